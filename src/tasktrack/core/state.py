# src/tasktrack/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.complexity import ComplexityAdvisor
from ..tasks.dependency_graph import DependencyGraph
from ..tasks.next_task import NextTaskSelector
from ..tasks.status_workflow import StatusWorkflow
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Settings object (tasktrack.config.Settings or a test stand-in).
    settings: object

    store: TaskStore
    graph: DependencyGraph
    workflow: StatusWorkflow
    selector: NextTaskSelector
    advisor: ComplexityAdvisor
