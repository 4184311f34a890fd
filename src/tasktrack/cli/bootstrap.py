# src/tasktrack/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local data directory exists,
- wires the store and the engine services into AppState.
"""

from __future__ import annotations

import logging
import time

from ..config import get_settings
from ..core.ports import Clock, SubtaskSource
from ..core.state import AppState
from ..tasks.complexity import ComplexityAdvisor
from ..tasks.dependency_graph import DependencyGraph
from ..tasks.next_task import NextTaskSelector
from ..tasks.status_workflow import StatusWorkflow
from ..tasks.task_models import Priority
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    clock: Clock = time.time,
    source: SubtaskSource | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(
        settings.tasks_path,
        clock=clock,
        default_priority=Priority.parse(getattr(settings, "default_priority", "medium")),
    )
    graph = DependencyGraph(store)
    state = AppState(
        settings=settings,
        store=store,
        graph=graph,
        workflow=StatusWorkflow(store),
        selector=NextTaskSelector(store),
        advisor=ComplexityAdvisor(
            store,
            graph,
            source=source,
            threshold=int(getattr(settings, "complexity_threshold", 5)),
        ),
    )
    logger.debug("State ready tasks_path=%s", settings.tasks_path)
    return state
