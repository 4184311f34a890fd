# src/tasktrack/tasks/task_store.py

from __future__ import annotations

import contextlib
import copy
import json
import logging
import os
import time
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..core.errors import (
    ConflictError,
    DuplicateError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from ..core.ports import Clock, DocumentStore
from .dependency_graph import dependents_of, link, prune_references, rewrite_references
from .task_models import (
    PENDING,
    Priority,
    Subtask,
    SubtaskId,
    Task,
    TaskDocument,
    TaskRef,
    TaskStatus,
    parse_ref,
)

logger = logging.getLogger(__name__)

_TEXT_FIELDS = {
    "title": "title",
    "description": "description",
    "test_strategy": "test_strategy",
    "testStrategy": "test_strategy",
}
_READONLY_FIELDS = {
    "id": "ids are assigned by the store",
    "dependencies": "use add_dependency / remove_dependency",
    "subtasks": "use add_subtask, expand or clear_subtasks",
    "details": "details is append-only; use append_details",
    "created_at": "timestamps are maintained by the store",
    "updated_at": "timestamps are maintained by the store",
    "status_changed_at": "timestamps are maintained by the store",
}


class JsonDocumentFile:
    """
    Task document persisted as a single JSON file.

    Writes go to a sibling temp file first and are moved into place with
    os.replace, so readers only ever see a complete snapshot.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> TaskDocument:
        if not self.path.exists():
            return TaskDocument()
        try:
            data = json.loads(self.path.read_text("utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"cannot read task document {self.path}: {exc}") from exc
        return TaskDocument.from_dict(data)

    def save(self, doc: TaskDocument) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(doc.to_dict(), ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StoreError(f"cannot write task document {self.path}: {exc}") from exc


class TaskStore:
    """
    Canonical set of tasks and subtasks.

    Every mutation runs inside transaction(): it works on a copy of the
    committed document and the copy only becomes visible (in memory and on
    disk) once the whole operation succeeded.

    Thread-safety:
    - none; callers serialize access (one mutation in flight at a time)
    """

    def __init__(
        self,
        backend: str | Path | DocumentStore = "tasks.json",
        *,
        clock: Clock = time.time,
        default_priority: Priority = Priority.MEDIUM,
    ) -> None:
        if isinstance(backend, (str, Path)):
            backend = JsonDocumentFile(backend)
        self._backend: DocumentStore = backend
        self._clock = clock
        self.default_priority = default_priority
        self._doc = self._backend.load()
        logger.info("TaskStore ready backend=%s total=%s", _describe(backend), self.count_tasks())

    # ---- transactions ----

    @contextlib.contextmanager
    def transaction(self) -> Iterator[TaskDocument]:
        work = self._doc.copy()
        try:
            yield work
        except BaseException:
            logger.debug("Transaction rolled back")
            raise
        self._backend.save(work)
        self._doc = work

    def snapshot(self) -> TaskDocument:
        return self._doc.copy()

    def reload(self) -> None:
        self._doc = self._backend.load()

    def now(self) -> float:
        return float(self._clock())

    # ---- queries ----

    def count_tasks(self) -> int:
        return len(self._doc.tasks)

    def get(self, ref: TaskRef | str) -> Task | Subtask:
        return copy.deepcopy(self._doc.get(parse_ref(ref)))

    def list(
        self,
        *,
        status: TaskStatus | str | Iterable[TaskStatus | str] | None = None,
        priority: Priority | str | Iterable[Priority | str] | None = None,
        with_subtasks: bool = False,
    ) -> list[Task | Subtask]:
        statuses = _status_filter(status)
        priorities = _priority_filter(priority)

        items: Iterable[Task | Subtask]
        if with_subtasks:
            items = self._doc.iter_items()
        else:
            items = (self._doc.tasks[tid] for tid in sorted(self._doc.tasks))

        out: list[Task | Subtask] = []
        for item in items:
            if statuses is not None and item.status.value.casefold() not in statuses:
                continue
            if priorities is not None and item.priority not in priorities:
                continue
            out.append(copy.deepcopy(item))
        return out

    # ---- mutations ----

    def create(
        self,
        *,
        title: str,
        description: str = "",
        details: str = "",
        status: TaskStatus | str = PENDING,
        priority: Priority | str | None = None,
        dependencies: Iterable[TaskRef | str] = (),
        test_strategy: str = "",
        task_id: int | None = None,
    ) -> int:
        with self.transaction() as doc:
            task = self.insert_task(
                doc,
                title=title,
                description=description,
                details=details,
                status=status,
                priority=priority,
                test_strategy=test_strategy,
                task_id=task_id,
            )
            for dep in dependencies:
                link(doc, task.id, parse_ref(dep))

        logger.info(
            "Task created id=%s priority=%s deps=%s",
            task.id,
            task.priority.value,
            [str(d) for d in task.dependencies],
        )
        return task.id

    def insert_task(
        self,
        doc: TaskDocument,
        *,
        title: str,
        description: str = "",
        details: str = "",
        status: TaskStatus | str = PENDING,
        priority: Priority | str | None = None,
        test_strategy: str = "",
        task_id: int | None = None,
    ) -> Task:
        """Add a dependency-less task to a working document (inside a transaction)."""
        if task_id is not None:
            if isinstance(task_id, bool) or not isinstance(task_id, int) or task_id < 1:
                raise ValidationError(f"task id must be a positive integer, got {task_id!r}")
            if task_id in doc.tasks:
                raise DuplicateError(f"task {task_id} already exists")
            doc.reserve_id(task_id)
        else:
            task_id = doc.allocate_id()

        now = self.now()
        task = Task(
            id=task_id,
            title=_required_text("title", title),
            description=_text("description", description),
            details=_text("details", details),
            status=TaskStatus.parse(status),
            priority=Priority.parse(priority) if priority is not None else self.default_priority,
            test_strategy=_text("test_strategy", test_strategy),
            created_at=now,
            updated_at=now,
        )
        doc.tasks[task_id] = task
        return task

    def add_subtask(
        self,
        parent_id: int,
        *,
        title: str,
        description: str = "",
        details: str = "",
        status: TaskStatus | str = PENDING,
        priority: Priority | str | None = None,
        dependencies: Iterable[TaskRef | str] = (),
        test_strategy: str = "",
    ) -> Subtask:
        with self.transaction() as doc:
            sub = self.insert_subtask(
                doc,
                parent_id,
                title=title,
                description=description,
                details=details,
                status=status,
                priority=priority,
                test_strategy=test_strategy,
            )
            for dep in dependencies:
                link(doc, sub.id, parse_ref(dep))
        logger.info("Subtask created id=%s", sub.id)
        return copy.deepcopy(sub)

    def insert_subtask(
        self,
        doc: TaskDocument,
        parent_id: int,
        *,
        title: str,
        description: str = "",
        details: str = "",
        status: TaskStatus | str = PENDING,
        priority: Priority | str | None = None,
        test_strategy: str = "",
    ) -> Subtask:
        """Append a subtask with the next contiguous index (inside a transaction)."""
        parent = doc.get_task(parent_id)
        now = self.now()
        sub = Subtask(
            id=SubtaskId(parent.id, len(parent.subtasks) + 1),
            title=_required_text("title", title),
            description=_text("description", description),
            details=_text("details", details),
            status=TaskStatus.parse(status),
            priority=Priority.parse(priority) if priority is not None else parent.priority,
            test_strategy=_text("test_strategy", test_strategy),
            created_at=now,
            updated_at=now,
        )
        parent.subtasks.append(sub)
        parent.updated_at = now
        return sub

    def update(self, ref: TaskRef | str, patch: Mapping[str, Any]) -> Task | Subtask:
        if not isinstance(patch, Mapping):
            raise ValidationError("patch must be a mapping of field names to values")
        target = parse_ref(ref)

        with self.transaction() as doc:
            item = doc.get(target)
            now = self.now()
            for key, value in patch.items():
                if key in _READONLY_FIELDS:
                    raise ValidationError(f"field {key!r} cannot be patched: {_READONLY_FIELDS[key]}")
                if key in _TEXT_FIELDS:
                    attr = _TEXT_FIELDS[key]
                    value = _required_text(key, value) if attr == "title" else _text(key, value)
                    setattr(item, attr, value)
                elif key == "priority":
                    item.priority = Priority.parse(value)
                elif key == "status":
                    new_status = TaskStatus.parse(value)
                    if new_status != item.status:
                        item.status = new_status
                        item.status_changed_at = now
                else:
                    raise ValidationError(f"unknown task field {key!r}")
            item.updated_at = now

        logger.debug("Task updated id=%s fields=%s", target, sorted(patch))
        return copy.deepcopy(item)

    def append_details(self, ref: TaskRef | str, text: str) -> Task | Subtask:
        """Append a timestamped note; existing details are never rewritten."""
        note = _required_text("text", text)
        target = parse_ref(ref)

        with self.transaction() as doc:
            item = doc.get(target)
            now = self.now()
            stamp = datetime.fromtimestamp(now, tz=timezone.utc).isoformat(timespec="seconds")
            block = f"[{stamp}] {note}"
            item.details = f"{item.details}\n\n{block}" if item.details else block
            item.updated_at = now

        logger.debug("Details appended id=%s chars=%s", target, len(note))
        return copy.deepcopy(item)

    def delete(self, ref: TaskRef | str, *, cascade: bool = False) -> list[tuple[TaskRef, TaskRef]]:
        """
        Remove a task (with its subtasks) or a single subtask.

        Returns the dependency edges pruned from other items; without cascade
        any such edge makes the deletion fail with ConflictError.
        """
        target = parse_ref(ref)

        with self.transaction() as doc:
            item = doc.get(target)
            removed: set[TaskRef] = {target}
            if isinstance(item, Task):
                removed.update(s.id for s in item.subtasks)

            blocking = [
                (source, dep)
                for source, dep in dependents_of(doc, removed)
                if source not in removed
            ]
            if blocking and not cascade:
                names = sorted({str(source) for source, _ in blocking})
                raise ConflictError(
                    f"task {target} is a dependency of {', '.join(names)}; "
                    "remove those dependencies first or delete with cascade",
                    dependents=[source for source, _ in blocking],
                )

            pruned = prune_references(doc, removed)
            pruned = [(source, dep) for source, dep in pruned if source not in removed]
            for source, dep in pruned:
                logger.warning("Cascade delete: removed dependency %s -> %s", source, dep)

            if isinstance(target, SubtaskId):
                remove_subtask(doc, target, now=self.now())
            else:
                del doc.tasks[target]

        logger.info("Task deleted id=%s cascade=%s pruned=%s", target, cascade, len(pruned))
        return pruned


def remove_subtask(doc: TaskDocument, sub_id: SubtaskId, *, now: float) -> None:
    """Drop one subtask and shift later siblings down so indices stay contiguous."""
    parent = doc.get_task(sub_id.parent)
    parent.subtasks = [s for s in parent.subtasks if s.id != sub_id]

    mapping: dict[TaskRef, TaskRef] = {}
    for position, sub in enumerate(parent.subtasks, start=1):
        if sub.id.index != position:
            new_id = SubtaskId(parent.id, position)
            mapping[sub.id] = new_id
            sub.id = new_id
    if mapping:
        rewrite_references(doc, mapping)
    parent.updated_at = now


def _describe(backend: DocumentStore) -> str:
    path = getattr(backend, "path", None)
    return str(path) if path is not None else type(backend).__name__


def _text(name: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string, got {type(value).__name__}")
    return value


def _required_text(name: str, value: Any) -> str:
    text = _text(name, value).strip()
    if not text:
        raise ValidationError(f"{name} is required")
    return text


def _status_filter(raw: Any) -> set[str] | None:
    if raw is None:
        return None
    if isinstance(raw, (str, TaskStatus)):
        raw = [raw]
    # Custom labels keep their case in storage but filter case-insensitively.
    return {TaskStatus.parse(s).value.casefold() for s in raw}


def _priority_filter(raw: Any) -> set[Priority] | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = [raw]
    return {Priority.parse(p) for p in raw}
