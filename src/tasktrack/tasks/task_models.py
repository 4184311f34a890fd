# src/tasktrack/tasks/task_models.py

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Union

from ..core.errors import NotFoundError, StoreError, ValidationError

DOCUMENT_VERSION = 1


class StatusKind(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    DEFERRED = "deferred"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class TaskStatus:
    """
    Open status enumeration.

    Built-in kinds participate in eligibility logic; anything else is kept
    verbatim as a CUSTOM label and simply counts as "not done".
    """

    kind: StatusKind
    label: str | None = None

    @classmethod
    def parse(cls, raw: TaskStatus | str) -> TaskStatus:
        if isinstance(raw, TaskStatus):
            return raw
        if not isinstance(raw, str) or not raw.strip():
            raise ValidationError(f"status must be a non-empty string, got {raw!r}")
        value = raw.strip().lower()
        # "in_progress" is accepted as an alias for the canonical dashed spelling.
        if value == "in_progress":
            value = StatusKind.IN_PROGRESS.value
        if value != StatusKind.CUSTOM.value:
            try:
                return cls(StatusKind(value))
            except ValueError:
                pass
        return cls(StatusKind.CUSTOM, raw.strip())

    @property
    def value(self) -> str:
        if self.kind is StatusKind.CUSTOM:
            return self.label or StatusKind.CUSTOM.value
        return self.kind.value

    @property
    def is_done(self) -> bool:
        return self.kind is StatusKind.DONE

    @property
    def is_pending(self) -> bool:
        return self.kind is StatusKind.PENDING

    def __str__(self) -> str:
        return self.value

    def __deepcopy__(self, memo: dict[int, Any]) -> TaskStatus:
        return self


PENDING = TaskStatus(StatusKind.PENDING)
IN_PROGRESS = TaskStatus(StatusKind.IN_PROGRESS)
DONE = TaskStatus(StatusKind.DONE)
DEFERRED = TaskStatus(StatusKind.DEFERRED)


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]

    @classmethod
    def parse(cls, raw: Priority | str) -> Priority:
        if isinstance(raw, Priority):
            return raw
        if not isinstance(raw, str):
            raise ValidationError(f"priority must be a string, got {raw!r}")
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise ValidationError(
                f"unknown priority {raw!r} (expected one of: high, medium, low)"
            ) from None


@dataclass(frozen=True, slots=True, order=True)
class SubtaskId:
    """Composite key of a subtask; rendered as "parent.index"."""

    parent: int
    index: int

    @classmethod
    def parse(cls, raw: str) -> SubtaskId:
        parent_s, sep, index_s = raw.strip().partition(".")
        if not sep:
            raise ValidationError(f"subtask id must look like 'parent.index', got {raw!r}")
        try:
            parent, index = int(parent_s), int(index_s)
        except ValueError:
            raise ValidationError(f"malformed subtask id {raw!r}") from None
        if parent < 1 or index < 1:
            raise ValidationError(f"subtask id components must be positive, got {raw!r}")
        return cls(parent, index)

    def __str__(self) -> str:
        return f"{self.parent}.{self.index}"

    def __deepcopy__(self, memo: dict[int, Any]) -> SubtaskId:
        return self


TaskRef = Union[int, SubtaskId]


def parse_ref(raw: TaskRef | str) -> TaskRef:
    """Accept 7, "7", "7.2" or SubtaskId(7, 2)."""
    if isinstance(raw, SubtaskId):
        return raw
    if isinstance(raw, bool):
        raise ValidationError(f"invalid task reference {raw!r}")
    if isinstance(raw, int):
        if raw < 1:
            raise ValidationError(f"task id must be positive, got {raw}")
        return raw
    if isinstance(raw, str):
        s = raw.strip()
        if "." in s:
            return SubtaskId.parse(s)
        try:
            value = int(s)
        except ValueError:
            raise ValidationError(f"invalid task reference {raw!r}") from None
        return parse_ref(value)
    raise ValidationError(f"invalid task reference {raw!r}")


def ref_sort_key(ref: TaskRef) -> tuple[int, int]:
    if isinstance(ref, SubtaskId):
        return (ref.parent, ref.index)
    return (ref, 0)


def _ref_to_json(ref: TaskRef) -> int | str:
    return str(ref) if isinstance(ref, SubtaskId) else ref


def _ref_from_json(raw: Any) -> TaskRef:
    # Sibling references are always persisted in dotted form.
    return parse_ref(raw)


@dataclass(slots=True, kw_only=True)
class WorkItem:
    """Fields shared by tasks and subtasks; each subclass exposes its own `ref`."""

    title: str
    description: str = ""
    details: str = ""
    status: TaskStatus = PENDING
    priority: Priority = Priority.MEDIUM
    dependencies: list[TaskRef] = field(default_factory=list)
    test_strategy: str = ""
    created_at: float = 0.0
    updated_at: float = 0.0
    status_changed_at: float | None = None

    def _common_to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "details": self.details,
            "status": self.status.value,
            "priority": self.priority.value,
            "dependencies": [_ref_to_json(d) for d in self.dependencies],
            "testStrategy": self.test_strategy,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "status_changed_at": self.status_changed_at,
        }

    @staticmethod
    def _common_from_dict(data: dict[str, Any]) -> dict[str, Any]:
        changed = data.get("status_changed_at")
        return {
            "title": str(data.get("title") or ""),
            "description": str(data.get("description") or ""),
            "details": str(data.get("details") or ""),
            "status": TaskStatus.parse(data.get("status") or StatusKind.PENDING.value),
            "priority": Priority.parse(data.get("priority") or Priority.MEDIUM.value),
            "dependencies": [_ref_from_json(d) for d in data.get("dependencies") or []],
            "test_strategy": str(data.get("testStrategy") or ""),
            "created_at": float(data.get("created_at") or 0.0),
            "updated_at": float(data.get("updated_at") or 0.0),
            "status_changed_at": float(changed) if changed is not None else None,
        }


@dataclass(slots=True, kw_only=True)
class Subtask(WorkItem):
    id: SubtaskId

    @property
    def ref(self) -> SubtaskId:
        return self.id

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id.index, **self._common_to_dict()}

    @classmethod
    def from_dict(cls, parent: int, data: dict[str, Any]) -> Subtask:
        return cls(id=SubtaskId(parent, int(data["id"])), **cls._common_from_dict(data))


@dataclass(slots=True, kw_only=True)
class Task(WorkItem):
    id: int
    subtasks: list[Subtask] = field(default_factory=list)

    @property
    def ref(self) -> int:
        return self.id

    def get_subtask(self, index: int) -> Subtask | None:
        if 1 <= index <= len(self.subtasks):
            sub = self.subtasks[index - 1]
            if sub.id.index == index:
                return sub
        for sub in self.subtasks:
            if sub.id.index == index:
                return sub
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            **self._common_to_dict(),
            "subtasks": [s.to_dict() for s in self.subtasks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        task_id = int(data["id"])
        return cls(
            id=task_id,
            subtasks=[Subtask.from_dict(task_id, s) for s in data.get("subtasks") or []],
            **cls._common_from_dict(data),
        )


@dataclass(slots=True)
class TaskDocument:
    """
    In-memory form of the persisted document.

    Tasks are keyed by numeric id; subtasks live inline on their parent.
    `next_id` only grows so ids are never reused after deletion.
    """

    tasks: dict[int, Task] = field(default_factory=dict)
    next_id: int = 1

    def copy(self) -> TaskDocument:
        return copy.deepcopy(self)

    def allocate_id(self) -> int:
        task_id = max(self.next_id, max(self.tasks, default=0) + 1)
        self.next_id = task_id + 1
        return task_id

    def reserve_id(self, task_id: int) -> None:
        self.next_id = max(self.next_id, task_id + 1)

    def exists(self, ref: TaskRef) -> bool:
        return self.find(ref) is not None

    def find(self, ref: TaskRef) -> Task | Subtask | None:
        if isinstance(ref, SubtaskId):
            parent = self.tasks.get(ref.parent)
            return parent.get_subtask(ref.index) if parent is not None else None
        return self.tasks.get(ref)

    def get(self, ref: TaskRef) -> Task | Subtask:
        item = self.find(ref)
        if item is None:
            raise NotFoundError(ref)
        return item

    def get_task(self, task_id: int) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def iter_items(self) -> Iterator[Task | Subtask]:
        """Tasks in id order, each followed by its subtasks."""
        for task_id in sorted(self.tasks):
            task = self.tasks[task_id]
            yield task
            yield from task.subtasks

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": DOCUMENT_VERSION,
            "next_id": self.next_id,
            "tasks": {str(tid): self.tasks[tid].to_dict() for tid in sorted(self.tasks)},
        }

    @classmethod
    def from_dict(cls, data: Any) -> TaskDocument:
        if not isinstance(data, dict):
            raise StoreError("task document must be a JSON object")
        raw_tasks = data.get("tasks", {})
        if not isinstance(raw_tasks, dict):
            raise StoreError("'tasks' must map task ids to task records")

        tasks: dict[int, Task] = {}
        try:
            for key, record in raw_tasks.items():
                if not isinstance(record, dict):
                    raise StoreError(f"task record {key!r} is not an object")
                record = {**record, "id": record.get("id", key)}
                task = Task.from_dict(record)
                if task.id != int(key):
                    raise StoreError(f"task key {key!r} does not match record id {task.id}")
                indices = [s.id.index for s in task.subtasks]
                if indices != list(range(1, len(indices) + 1)):
                    raise StoreError(f"subtasks of task {task.id} must be numbered 1..n, got {indices}")
                tasks[task.id] = task
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise StoreError(f"malformed task document: {exc}") from exc

        next_id = int(data.get("next_id") or 1)
        doc = cls(tasks=tasks, next_id=max(next_id, max(tasks, default=0) + 1))
        return doc
