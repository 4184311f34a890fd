# src/tasktrack/tasks/status_workflow.py

from __future__ import annotations

"""
Status bookkeeping.

Any status may follow any other: people must always be able to override a
task's state by hand. The workflow only normalizes the value, stamps the
change and logs it. Parents never cascade their status to subtasks.
"""

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..core.errors import InvalidTransitionError, ValidationError
from .task_models import Subtask, Task, TaskRef, TaskStatus, parse_ref

if TYPE_CHECKING:
    from .task_store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Completion:
    done: int
    total: int

    @property
    def percent(self) -> float:
        return 100.0 * self.done / self.total if self.total else 0.0

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.done == self.total


class StatusWorkflow:
    def __init__(self, store: TaskStore) -> None:
        self._store = store

    def set_status(self, ref: TaskRef | str, new_status: TaskStatus | str) -> Task | Subtask:
        try:
            status = TaskStatus.parse(new_status)
        except ValidationError as exc:
            raise InvalidTransitionError(str(exc)) from None

        target = parse_ref(ref)
        with self._store.transaction() as doc:
            item = doc.get(target)
            previous = item.status
            now = self._store.now()
            item.status = status
            item.updated_at = now
            if previous != status:
                item.status_changed_at = now

        logger.info("Task %s status %s -> %s", target, previous.value, status.value)
        return copy.deepcopy(item)

    def is_done(self, ref: TaskRef | str) -> bool:
        return self._store.get(ref).status.is_done

    def completion(self, task_id: int | str) -> Completion:
        """Progress of a parent's subtasks; independent of the parent's own status."""
        task = self._store.get(task_id)
        if not isinstance(task, Task):
            raise ValidationError(f"{task_id} is a subtask; completion is tracked per parent")
        done = sum(1 for s in task.subtasks if s.status.is_done)
        return Completion(done=done, total=len(task.subtasks))
