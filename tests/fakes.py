# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field

from tasktrack.core.errors import StoreError
from tasktrack.tasks.complexity import SubtaskProposal
from tasktrack.tasks.task_models import Task, TaskDocument


class FakeClock:
    """Deterministic clock; advance() moves time forward explicitly."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1.0) -> None:
        self.now += seconds


@dataclass
class MemoryDocumentStore:
    """
    In-memory DocumentStore.

    - `doc` lets tests seed documents the public API would refuse to build
      (cycles, dangling references)
    - `fail_saves` simulates a disk error on the next save
    """

    doc: TaskDocument = field(default_factory=TaskDocument)
    saves: int = 0
    fail_saves: bool = False

    def load(self) -> TaskDocument:
        return self.doc.copy()

    def save(self, doc: TaskDocument) -> None:
        if self.fail_saves:
            raise StoreError("disk full")
        self.saves += 1
        self.doc = doc.copy()


class RecordingSubtaskSource:
    """SubtaskSource that remembers what it was asked for."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, int]] = []

    def propose(self, task: Task, count: int) -> list[SubtaskProposal]:
        self.calls.append((task.id, count))
        return [SubtaskProposal(title=f"step {n}") for n in range(1, count + 1)]
