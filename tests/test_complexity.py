# tests/test_complexity.py

from __future__ import annotations

import json

import pytest

from tasktrack.core.errors import CycleError, ValidationError
from tasktrack.tasks.complexity import (
    ComplexityAdvisor,
    SubtaskProposal,
    default_complexity_score,
    recommended_subtask_count,
)
from tasktrack.tasks.dependency_graph import DependencyGraph
from tasktrack.tasks.task_models import Priority, SubtaskId, Task

from .fakes import RecordingSubtaskSource


def test_default_score_is_bounded() -> None:
    assert default_complexity_score(Task(id=1, title="tiny")) == 1

    huge = Task(
        id=1,
        title="everything",
        description=" ".join(["implement build test deploy migrate refactor validate"] * 60),
        details="\n".join(f"- step {n}" for n in range(20)),
    )
    huge.subtasks = [Task(id=9, title="x")] * 8  # only the count matters
    assert default_complexity_score(huge) == 10


def test_default_score_never_decreases_as_steps_are_added() -> None:
    task = Task(id=1, title="grow", description="Set up the service.")
    previous = default_complexity_score(task)
    verbs = ["implement", "test", "deploy", "document", "migrate", "validate", "refactor"]
    for n in range(30):
        task.details += f"\n{n + 1}. {verbs[n % len(verbs)]} part {n} of the rollout plan"
        score = default_complexity_score(task)
        assert score >= previous
        previous = score
    assert previous > 1


def test_advisor_clamps_pluggable_policy(store) -> None:
    task_id = store.create(title="a")
    graph = DependencyGraph(store)
    assert ComplexityAdvisor(store, graph, policy=lambda item: 42).score(task_id) == 10
    assert ComplexityAdvisor(store, graph, policy=lambda item: -3).score(task_id) == 1


def test_expand_appends_contiguous_subtasks(state) -> None:
    parent = state.store.create(title="parent", priority="high")
    state.store.add_subtask(parent, title="existing 1")
    state.store.add_subtask(parent, title="existing 2", status="done")

    created = state.advisor.expand(parent, 3)

    assert [str(s.id) for s in created] == ["1.3", "1.4", "1.5"]
    assert all(s.status.is_pending for s in created)
    assert all(s.priority is Priority.HIGH for s in created)
    assert [s.title for s in created] == ["parent: part 3", "parent: part 4", "parent: part 5"]
    task = state.store.get(parent)
    assert [str(s.id) for s in task.subtasks] == ["1.1", "1.2", "1.3", "1.4", "1.5"]
    assert task.subtasks[1].status.value == "done"


def test_expand_priority_override_and_custom_source(state) -> None:
    source = RecordingSubtaskSource()
    state.advisor._source = source
    parent = state.store.create(title="parent", priority="high")

    created = state.advisor.expand(parent, 2, priority="low")

    assert source.calls == [(parent, 2)]
    assert [s.title for s in created] == ["step 1", "step 2"]
    assert all(s.priority is Priority.LOW for s in created)


def test_expand_with_proposals_links_new_siblings(state) -> None:
    base = state.store.create(title="base")
    parent = state.store.create(title="parent")
    proposals = [
        SubtaskProposal(title="design", dependencies=(base,)),
        SubtaskProposal(title="build", dependencies=("2.1",)),
        SubtaskProposal(title="verify", dependencies=("2.2", "2.1")),
    ]

    created = state.advisor.expand(parent, proposals=proposals)

    assert [s.title for s in created] == ["design", "build", "verify"]
    assert state.store.get("2.3").dependencies == [SubtaskId(2, 2), SubtaskId(2, 1)]
    assert state.store.get("2.1").dependencies == [base]


def test_expand_rejects_bad_input_without_side_effects(state) -> None:
    parent = state.store.create(title="parent")
    before = state.store.snapshot().to_dict()

    with pytest.raises(ValidationError):
        state.advisor.expand(parent, 0)
    with pytest.raises(ValidationError):
        state.advisor.expand(parent, 2, proposals=[SubtaskProposal(title="only one")])
    with pytest.raises(CycleError):
        state.advisor.expand(
            parent,
            proposals=[
                SubtaskProposal(title="a", dependencies=("1.2",)),
                SubtaskProposal(title="b", dependencies=("1.1",)),
            ],
        )
    with pytest.raises(ValidationError):
        state.advisor.expand(parent, proposals=[SubtaskProposal(title="   ")])

    assert state.store.snapshot().to_dict() == before


def test_expand_without_count_uses_recommendation(state) -> None:
    parent = state.store.create(title="parent")
    created = state.advisor.expand(parent)
    assert len(created) == recommended_subtask_count(state.advisor.score(parent))


def test_expand_replace_clears_first(state) -> None:
    parent = state.store.create(title="parent")
    state.advisor.expand(parent, 4)
    watcher = state.store.create(title="watcher", dependencies=["1.4"])

    created = state.advisor.expand(parent, 2, replace=True)

    assert [str(s.id) for s in created] == ["1.1", "1.2"]
    assert [s.title for s in created] == ["parent: part 1", "parent: part 2"]
    assert state.store.get(watcher).dependencies == []


def test_clear_subtasks_prunes_references(state) -> None:
    parent = state.store.create(title="parent")
    state.advisor.expand(parent, 3)
    other = state.store.create(title="other", dependencies=["1.2"])
    state.graph.add_dependency("1.3", other)

    removed = state.advisor.clear_subtasks(parent)

    assert removed == 3
    assert state.store.get(parent).subtasks == []
    assert state.store.get(other).dependencies == []
    assert state.graph.validate() == []
    assert state.advisor.clear_subtasks(parent) == 0
    with pytest.raises(ValidationError):
        state.advisor.clear_subtasks("1.1")


def test_analyze_ranks_open_tasks_and_saves_report(state, settings) -> None:
    simple = state.store.create(title="simple")
    complex_id = state.store.create(
        title="complex",
        description=" ".join(["implement validate deploy migrate refactor test"] * 20),
        details="- a\n- b\n- c\n- d",
    )
    state.store.create(title="finished", status="done")

    report = state.advisor.analyze(threshold=4)

    assert [e.task_id for e in report.entries] == [complex_id, simple]
    top, bottom = report.entries
    assert top.expand and not bottom.expand
    assert top.score > bottom.score
    assert top.recommended_subtasks == recommended_subtask_count(top.score)

    path = state.advisor.save_report(report, settings.report_path)
    saved = json.loads(path.read_text("utf-8"))
    assert saved["threshold"] == 4
    assert [e["task_id"] for e in saved["entries"]] == [complex_id, simple]
