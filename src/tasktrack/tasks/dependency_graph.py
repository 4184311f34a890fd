# src/tasktrack/tasks/dependency_graph.py

"""
Dependency graph over tasks and subtasks.

Edges point from a dependent item to its prerequisite ("source needs
target done first"). The module-level functions operate on a working
TaskDocument inside a store transaction; DependencyGraph wraps them in
transactions of its own for callers that just want one edge changed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

import networkx as nx

from ..core.errors import CycleError, DuplicateError, NotFoundError, ValidationError
from .task_models import TaskDocument, TaskRef, parse_ref, ref_sort_key

if TYPE_CHECKING:
    from .task_store import TaskStore

logger = logging.getLogger(__name__)


class ViolationKind(StrEnum):
    CYCLE = "cycle"
    DANGLING = "dangling"
    SELF_REFERENCE = "self_reference"
    DUPLICATE = "duplicate"


@dataclass(frozen=True, slots=True)
class Violation:
    kind: ViolationKind
    source: TaskRef
    target: TaskRef | None = None
    cycle: tuple[TaskRef, ...] = field(default_factory=tuple)

    def describe(self) -> str:
        if self.kind is ViolationKind.CYCLE:
            loop = [*self.cycle, self.cycle[0]] if self.cycle else []
            return "cycle: " + " -> ".join(str(r) for r in loop)
        if self.kind is ViolationKind.DANGLING:
            return f"{self.source} depends on missing {self.target}"
        if self.kind is ViolationKind.SELF_REFERENCE:
            return f"{self.source} depends on itself"
        return f"{self.source} lists {self.target} more than once"


@dataclass(frozen=True, slots=True)
class Repair:
    kind: ViolationKind
    source: TaskRef
    target: TaskRef

    def describe(self) -> str:
        return f"removed {self.kind.value} dependency {self.source} -> {self.target}"


# ---- document-level operations ----


def build_graph(doc: TaskDocument) -> nx.DiGraph:
    """Every item is a node; only edges to existing, distinct targets are added."""
    graph = nx.DiGraph()
    for item in doc.iter_items():
        graph.add_node(item.ref)
    for item in doc.iter_items():
        for dep in item.dependencies:
            if dep != item.ref and graph.has_node(dep):
                graph.add_edge(item.ref, dep)
    return graph


def link(doc: TaskDocument, from_ref: TaskRef, to_ref: TaskRef) -> None:
    """Add from_ref -> to_ref after existence, duplicate and reachability checks."""
    source = doc.get(from_ref)
    if from_ref == to_ref:
        raise ValidationError(f"task {from_ref} cannot depend on itself")
    if not doc.exists(to_ref):
        raise NotFoundError(to_ref, f"dependency target {to_ref} not found")
    if to_ref in source.dependencies:
        raise DuplicateError(f"task {from_ref} already depends on {to_ref}")

    graph = build_graph(doc)
    if nx.has_path(graph, to_ref, from_ref):
        path = [from_ref, *nx.shortest_path(graph, to_ref, from_ref)]
        raise CycleError(
            f"adding {from_ref} -> {to_ref} would create a cycle: "
            + " -> ".join(str(r) for r in path),
            path=path,
        )
    source.dependencies.append(to_ref)


def unlink(doc: TaskDocument, from_ref: TaskRef, to_ref: TaskRef) -> None:
    source = doc.get(from_ref)
    if to_ref not in source.dependencies:
        raise NotFoundError(to_ref, f"task {from_ref} does not depend on {to_ref}")
    source.dependencies = [d for d in source.dependencies if d != to_ref]


def dependents_of(doc: TaskDocument, targets: Iterable[TaskRef]) -> list[tuple[TaskRef, TaskRef]]:
    """(source, target) edges whose target is in `targets`."""
    wanted = set(targets)
    return [
        (item.ref, dep)
        for item in doc.iter_items()
        for dep in item.dependencies
        if dep in wanted
    ]


def prune_references(doc: TaskDocument, targets: Iterable[TaskRef]) -> list[tuple[TaskRef, TaskRef]]:
    """Drop every edge pointing at `targets`; returns what was removed."""
    wanted = set(targets)
    removed: list[tuple[TaskRef, TaskRef]] = []
    for item in doc.iter_items():
        kept = []
        for dep in item.dependencies:
            if dep in wanted:
                removed.append((item.ref, dep))
            else:
                kept.append(dep)
        item.dependencies = kept
    return removed


def rewrite_references(doc: TaskDocument, mapping: Mapping[TaskRef, TaskRef]) -> None:
    for item in doc.iter_items():
        item.dependencies = [mapping.get(dep, dep) for dep in item.dependencies]


def find_violations(doc: TaskDocument) -> list[Violation]:
    violations: list[Violation] = []
    for item in doc.iter_items():
        seen: set[TaskRef] = set()
        for dep in item.dependencies:
            if dep == item.ref:
                violations.append(Violation(ViolationKind.SELF_REFERENCE, item.ref, dep))
            elif not doc.exists(dep):
                violations.append(Violation(ViolationKind.DANGLING, item.ref, dep))
            elif dep in seen:
                violations.append(Violation(ViolationKind.DUPLICATE, item.ref, dep))
            seen.add(dep)

    for cycle in nx.simple_cycles(build_graph(doc)):
        # Rotate so the smallest id leads; keeps reports stable across runs.
        start = min(range(len(cycle)), key=lambda i: ref_sort_key(cycle[i]))
        ordered = tuple(cycle[start:] + cycle[:start])
        violations.append(Violation(ViolationKind.CYCLE, ordered[0], cycle=ordered))
    return violations


# ---- service ----


class DependencyGraph:
    """Validated mutations and queries over the store's dependency edges."""

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    def add_dependency(self, from_ref: TaskRef | str, to_ref: TaskRef | str) -> None:
        source, target = parse_ref(from_ref), parse_ref(to_ref)
        try:
            with self._store.transaction() as doc:
                link(doc, source, target)
        except CycleError:
            logger.warning("Rejected dependency %s -> %s (cycle)", source, target)
            raise
        logger.info("Dependency added %s -> %s", source, target)

    def remove_dependency(self, from_ref: TaskRef | str, to_ref: TaskRef | str) -> None:
        source, target = parse_ref(from_ref), parse_ref(to_ref)
        with self._store.transaction() as doc:
            unlink(doc, source, target)
        logger.info("Dependency removed %s -> %s", source, target)

    def remove_references(self, doc: TaskDocument, targets: Iterable[TaskRef]) -> list[tuple[TaskRef, TaskRef]]:
        """Prune edges to `targets` inside a caller-owned transaction."""
        removed = prune_references(doc, targets)
        for source, target in removed:
            logger.info("Dependency removed %s -> %s", source, target)
        return removed

    def dependencies_of(self, ref: TaskRef | str) -> list[TaskRef]:
        return list(self._store.get(ref).dependencies)

    def dependents_of(self, ref: TaskRef | str) -> list[TaskRef]:
        target = parse_ref(ref)
        doc = self._store.snapshot()
        doc.get(target)
        return [source for source, _ in dependents_of(doc, [target])]

    def execution_order(self) -> list[TaskRef]:
        """Prerequisites first; ties broken by id."""
        graph = build_graph(self._store.snapshot())
        try:
            order = list(nx.lexicographical_topological_sort(graph.reverse(copy=False), key=ref_sort_key))
        except nx.NetworkXUnfeasible:
            cycle = [u for u, _ in nx.find_cycle(graph)]
            raise CycleError(
                "dependency graph contains a cycle: " + " -> ".join(str(r) for r in cycle),
                path=cycle,
            ) from None
        return order

    def validate(self) -> list[Violation]:
        violations = find_violations(self._store.snapshot())
        if violations:
            logger.warning("Dependency validation found %d issue(s)", len(violations))
        return violations

    def fix(self) -> list[Repair]:
        """
        Remove dangling, self-referential and duplicate edges.

        Cycles are only reported: breaking one would mean guessing which
        ordering the author intended.
        """
        snapshot = self._store.snapshot()
        if not any(v.kind is not ViolationKind.CYCLE for v in find_violations(snapshot)):
            self._log_cycles(snapshot)
            return []

        repairs: list[Repair] = []
        with self._store.transaction() as doc:
            for item in doc.iter_items():
                kept: list[TaskRef] = []
                for dep in item.dependencies:
                    if dep == item.ref:
                        repairs.append(Repair(ViolationKind.SELF_REFERENCE, item.ref, dep))
                    elif not doc.exists(dep):
                        repairs.append(Repair(ViolationKind.DANGLING, item.ref, dep))
                    elif dep in kept:
                        repairs.append(Repair(ViolationKind.DUPLICATE, item.ref, dep))
                    else:
                        kept.append(dep)
                item.dependencies = kept

        for repair in repairs:
            logger.info("Dependency fix: %s", repair.describe())
        self._log_cycles(self._store.snapshot())
        return repairs

    @staticmethod
    def _log_cycles(doc: TaskDocument) -> None:
        for v in find_violations(doc):
            if v.kind is ViolationKind.CYCLE:
                logger.warning("Unresolved dependency %s (needs manual fix)", v.describe())
