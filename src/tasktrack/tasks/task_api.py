# src/tasktrack/tasks/task_api.py

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from ..core.errors import DuplicateError, StoreError, ValidationError
from .dependency_graph import link
from .task_models import PENDING, parse_ref
from .task_store import TaskStore

logger = logging.getLogger(__name__)

_RECORD_FIELDS = {
    "id",
    "title",
    "description",
    "details",
    "status",
    "priority",
    "dependencies",
    "testStrategy",
    "test_strategy",
    "subtasks",
    "created_at",
    "updated_at",
    "status_changed_at",
}


def import_tasks(store: TaskStore, records: Iterable[Mapping[str, Any]]) -> list[int]:
    """
    Bulk-create tasks parsed from an external planning document.

    Runs as one transaction. Records may carry explicit ids and may reference
    records that appear later in the sequence; each edge is still checked for
    dangling targets and cycles exactly as for interactive creation. Nested
    "subtasks" records are attached in order and their dependencies are
    ordinary references ("3", "3.1").
    """
    records = list(records)
    created: list[int] = []
    pending_links: list[tuple[Any, Any]] = []

    with store.transaction() as doc:
        seen_ids: set[int] = set()
        for position, record in enumerate(records, start=1):
            if not isinstance(record, Mapping):
                raise ValidationError(f"record #{position} is not a mapping")
            unknown = set(record) - _RECORD_FIELDS
            if unknown:
                raise ValidationError(f"record #{position} has unknown field(s): {sorted(unknown)}")

            task_id = record.get("id")
            if task_id is not None:
                task_id = parse_ref(task_id)
                if not isinstance(task_id, int):
                    raise ValidationError(f"record #{position}: task id must be an integer")
                if task_id in seen_ids:
                    raise DuplicateError(f"task id {task_id} appears twice in the import")
                seen_ids.add(task_id)

            task = store.insert_task(
                doc,
                title=record.get("title", ""),
                description=record.get("description", ""),
                details=record.get("details", ""),
                status=record.get("status") or PENDING,
                priority=record.get("priority"),
                test_strategy=record.get("testStrategy", record.get("test_strategy", "")),
                task_id=task_id,
            )
            created.append(task.id)
            pending_links.extend((task.id, dep) for dep in record.get("dependencies") or [])

            for sub_record in record.get("subtasks") or []:
                if not isinstance(sub_record, Mapping):
                    raise ValidationError(f"record #{position}: subtask is not a mapping")
                sub = store.insert_subtask(
                    doc,
                    task.id,
                    title=sub_record.get("title", ""),
                    description=sub_record.get("description", ""),
                    details=sub_record.get("details", ""),
                    status=sub_record.get("status") or PENDING,
                    priority=sub_record.get("priority"),
                    test_strategy=sub_record.get("testStrategy", sub_record.get("test_strategy", "")),
                )
                pending_links.extend((sub.id, dep) for dep in sub_record.get("dependencies") or [])

        for source, dep in pending_links:
            link(doc, source, parse_ref(dep))

    logger.info("Imported %d task(s) with %d dependency edge(s)", len(created), len(pending_links))
    return created


def load_plan_file(path: str | Path) -> list[dict[str, Any]]:
    """
    Read import records from a JSON file.

    Accepts a list of task records, an object with a "tasks" list, or a
    persisted task document (object mapping ids to records).
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise StoreError(f"cannot read plan file {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("tasks", data)
    if isinstance(data, dict):
        data = [
            {**record, "id": record.get("id", key)} if isinstance(record, dict) else record
            for key, record in data.items()
        ]
    if not isinstance(data, list):
        raise ValidationError(f"plan file {path} must contain a list of task records")
    return data
