# src/tasktrack/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

Persistence and the pluggable advisor policies are Protocols so that callers
can swap the JSON file for another backend, or plug their own scoring and
subtask-suggestion logic, without touching the engine.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..tasks.complexity import SubtaskProposal
    from ..tasks.task_models import Subtask, Task, TaskDocument

Clock = Callable[[], float]
# Returns epoch seconds; injected so tests can pin timestamps.


class DocumentStore(Protocol):
    """Where the task document lives between invocations."""

    def load(self) -> TaskDocument: ...

    def save(self, doc: TaskDocument) -> None: ...


class ComplexityPolicy(Protocol):
    """Score 1..10; must never decrease when more sub-steps are described."""

    def __call__(self, item: Task | Subtask) -> int: ...


class SubtaskSource(Protocol):
    """
    Supplies subtask content for expansion.

    Research/LLM collaborators live outside the engine and plug in here;
    the engine only validates and stores what they return.
    """

    def propose(self, task: Task, count: int) -> list[SubtaskProposal]: ...
