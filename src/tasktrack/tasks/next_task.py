# src/tasktrack/tasks/next_task.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .task_models import Subtask, SubtaskId, Task, TaskDocument, ref_sort_key

if TYPE_CHECKING:
    from .task_store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Suggestion:
    """
    The recommended item plus informational context.

    open_subtasks lists unfinished subtasks of the item (for a task) or of
    its parent (for a subtask); they never block the recommendation.
    """

    item: Task | Subtask
    open_subtasks: tuple[SubtaskId, ...] = field(default_factory=tuple)


def is_eligible(doc: TaskDocument, item: Task | Subtask) -> bool:
    """Pending, and every dependency exists and is done."""
    if not item.status.is_pending:
        return False
    for dep in item.dependencies:
        target = doc.find(dep)
        if target is None or not target.status.is_done:
            return False
    return True


def rank_key(item: Task | Subtask) -> tuple[int, int, tuple[int, int]]:
    # Higher priority first, then fewer blockers, then lowest id.
    return (-item.priority.rank, len(item.dependencies), ref_sort_key(item.ref))


class NextTaskSelector:
    """Read-only view computing what to work on next; keeps no state between calls."""

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    def candidates(self) -> list[Task | Subtask]:
        doc = self._store.snapshot()
        ranked = [item for item in doc.iter_items() if is_eligible(doc, item)]
        ranked.sort(key=rank_key)
        return ranked

    def next(self) -> Task | Subtask | None:
        ranked = self.candidates()
        if not ranked:
            logger.debug("No eligible task")
            return None
        return ranked[0]

    def suggest(self) -> Suggestion | None:
        item = self.next()
        if item is None:
            return None
        if isinstance(item, Task):
            siblings = item.subtasks
        else:
            siblings = self._store.snapshot().get_task(item.id.parent).subtasks
        open_subtasks = tuple(
            s.id for s in siblings if not s.status.is_done and s.id != item.ref
        )
        return Suggestion(item=item, open_subtasks=open_subtasks)
