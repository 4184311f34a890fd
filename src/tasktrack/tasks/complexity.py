# src/tasktrack/tasks/complexity.py

"""
Complexity / expansion advisor.

Scores tasks for breakdown-worthiness and attaches subtasks to them. Both
the scoring formula and the subtask content are pluggable (ComplexityPolicy
and SubtaskSource); the defaults here are deliberately mechanical and never
produce natural-language content beyond numbered placeholder titles.
"""

from __future__ import annotations

import contextlib
import copy
import json
import logging
import os
import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..core.errors import StoreError, ValidationError
from ..core.ports import ComplexityPolicy, SubtaskSource
from .dependency_graph import link
from .task_models import Priority, Subtask, Task, TaskDocument, TaskRef, parse_ref

if TYPE_CHECKING:
    from .dependency_graph import DependencyGraph
    from .task_store import TaskStore

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 10

_ACTION_VERBS = frozenset(
    {
        "add", "analyze", "build", "configure", "connect", "convert", "create",
        "debug", "define", "deploy", "design", "document", "extract", "fix",
        "generate", "handle", "implement", "import", "integrate", "load",
        "merge", "migrate", "monitor", "optimize", "parse", "refactor",
        "remove", "render", "replace", "research", "review", "schedule",
        "secure", "serialize", "setup", "store", "support", "sync", "test",
        "update", "upgrade", "validate", "verify", "write",
    }
)
_WORD_RE = re.compile(r"[a-z][a-z'-]*")
_STEP_RE = re.compile(r"^[ \t]*(?:[-*+]|\d+[.)])[ \t]+\S", re.MULTILINE)


def default_complexity_score(item: Task | Subtask) -> int:
    """
    Heuristic 1..10 score.

    Every term only grows as text is appended or subtasks are added:
    - words in description/details/test strategy (1 point per 40, max 3)
    - distinct action verbs (1 point per 2, max 3)
    - enumerated sub-steps such as "- x" or "2. y" (1 point per 2, max 2)
    - existing subtasks (1 point from 4 on)
    """
    text = "\n".join([item.description, item.details, item.test_strategy]).lower()
    words = _WORD_RE.findall(text)
    verbs = {w for w in words if w in _ACTION_VERBS}
    steps = len(_STEP_RE.findall(text))
    subtasks = len(item.subtasks) if isinstance(item, Task) else 0

    score = (
        MIN_SCORE
        + min(3, len(words) // 40)
        + min(3, len(verbs) // 2)
        + min(2, steps // 2)
        + min(1, subtasks // 4)
    )
    return max(MIN_SCORE, min(MAX_SCORE, score))


def recommended_subtask_count(score: int) -> int:
    return max(2, min(8, score - 1))


@dataclass(frozen=True, slots=True)
class SubtaskProposal:
    """
    Content for one new subtask.

    dependencies are ordinary references ("3", "5.2"); a source that wants a
    new subtask to follow another new one can compute its dotted id because
    new subtasks are numbered right after the existing ones.
    """

    title: str
    description: str = ""
    details: str = ""
    test_strategy: str = ""
    dependencies: tuple[TaskRef | str, ...] = ()


class PlaceholderSubtaskSource:
    """Numbered placeholder titles, to be refined by a person or agent later."""

    def propose(self, task: Task, count: int) -> list[SubtaskProposal]:
        start = len(task.subtasks) + 1
        return [
            SubtaskProposal(title=f"{task.title}: part {n}")
            for n in range(start, start + count)
        ]


@dataclass(frozen=True, slots=True)
class ComplexityEntry:
    task_id: int
    title: str
    score: int
    recommended_subtasks: int
    expand: bool


@dataclass(frozen=True, slots=True)
class ComplexityReport:
    generated_at: float
    threshold: int
    entries: tuple[ComplexityEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "threshold": self.threshold,
            "entries": [asdict(e) for e in self.entries],
        }


class ComplexityAdvisor:
    def __init__(
        self,
        store: TaskStore,
        graph: DependencyGraph,
        *,
        policy: ComplexityPolicy = default_complexity_score,
        source: SubtaskSource | None = None,
        threshold: int = 5,
    ) -> None:
        self._store = store
        self._graph = graph
        self._policy = policy
        self._source: SubtaskSource = source or PlaceholderSubtaskSource()
        self.threshold = threshold

    # ---- scoring ----

    def score(self, task: Task | Subtask | TaskRef | str) -> int:
        item = task if isinstance(task, (Task, Subtask)) else self._store.get(task)
        raw = int(self._policy(item))
        return max(MIN_SCORE, min(MAX_SCORE, raw))

    def analyze(self, threshold: int | None = None) -> ComplexityReport:
        """Score every unfinished top-level task, most complex first."""
        limit = self.threshold if threshold is None else int(threshold)
        entries = []
        for task in self._store.list():
            if task.status.is_done:
                continue
            score = self.score(task)
            entries.append(
                ComplexityEntry(
                    task_id=task.id,
                    title=task.title,
                    score=score,
                    recommended_subtasks=recommended_subtask_count(score),
                    expand=score >= limit,
                )
            )
        entries.sort(key=lambda e: (-e.score, e.task_id))
        logger.info(
            "Complexity analysis: %d task(s), %d above threshold %d",
            len(entries),
            sum(1 for e in entries if e.expand),
            limit,
        )
        return ComplexityReport(generated_at=self._store.now(), threshold=limit, entries=tuple(entries))

    @staticmethod
    def save_report(report: ComplexityReport, path: str | Path) -> Path:
        path = Path(path)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(report.to_dict(), ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StoreError(f"cannot write complexity report {path}: {exc}") from exc
        logger.info("Saved complexity report to %s", path)
        return path

    # ---- expansion ----

    def expand(
        self,
        task_id: int | str,
        target_subtask_count: int | None = None,
        *,
        proposals: Sequence[SubtaskProposal] | None = None,
        priority: Priority | str | None = None,
        replace: bool = False,
    ) -> list[Subtask]:
        """
        Append subtasks to a parent task.

        New subtasks are pending, numbered after the existing ones and inherit
        the parent's priority unless `priority` is given. With replace=True the
        current subtasks are cleared first, in the same transaction.
        """
        parent = self._store.get(task_id)
        if not isinstance(parent, Task):
            raise ValidationError(f"{task_id} is a subtask; only tasks can be expanded")

        count = target_subtask_count
        if count is None:
            count = len(proposals) if proposals is not None else recommended_subtask_count(self.score(parent))
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValidationError(f"subtask count must be a positive integer, got {count!r}")

        if proposals is None:
            basis = copy.deepcopy(parent)
            if replace:
                basis.subtasks = []
            proposals = self._source.propose(basis, count)
        if len(proposals) != count:
            raise ValidationError(f"expected {count} subtask proposal(s), got {len(proposals)}")
        override = Priority.parse(priority) if priority is not None else None

        with self._store.transaction() as doc:
            if replace:
                self._clear(doc, parent.id)
            created: list[Subtask] = []
            for proposal in proposals:
                created.append(
                    self._store.insert_subtask(
                        doc,
                        parent.id,
                        title=proposal.title,
                        description=proposal.description,
                        details=proposal.details,
                        test_strategy=proposal.test_strategy,
                        priority=override,
                    )
                )
            # Link after inserting so proposals may reference each other.
            for sub, proposal in zip(created, proposals):
                for dep in proposal.dependencies:
                    link(doc, sub.id, parse_ref(dep))

        logger.info(
            "Expanded task %s with %d subtask(s): %s",
            parent.id,
            len(created),
            ", ".join(str(s.id) for s in created),
        )
        return [copy.deepcopy(s) for s in created]

    def clear_subtasks(self, task_id: int | str) -> int:
        parent_id = parse_ref(task_id)
        if not isinstance(parent_id, int):
            raise ValidationError(f"{task_id} is a subtask; clear_subtasks takes a task id")
        with self._store.transaction() as doc:
            removed = self._clear(doc, parent_id)
        logger.info("Cleared %d subtask(s) from task %s", removed, parent_id)
        return removed

    def _clear(self, doc: TaskDocument, task_id: int) -> int:
        parent = doc.get_task(task_id)
        refs = [s.id for s in parent.subtasks]
        if refs:
            self._graph.remove_references(doc, refs)
        parent.subtasks = []
        parent.updated_at = self._store.now()
        return len(refs)
