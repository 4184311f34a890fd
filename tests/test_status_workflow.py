# tests/test_status_workflow.py

from __future__ import annotations

import pytest

from tasktrack.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from tasktrack.tasks.task_models import StatusKind


def test_any_status_can_follow_any_other(state) -> None:
    task_id = state.store.create(title="a")
    for status in ("done", "pending", "deferred", "in-progress", "Blocked", "pending"):
        item = state.workflow.set_status(task_id, status)
        assert item.status.value == status
    assert state.store.get(task_id).status.is_pending


def test_custom_status_is_stored_verbatim(state) -> None:
    task_id = state.store.create(title="a")
    item = state.workflow.set_status(task_id, "Waiting-on-Legal")
    assert item.status.kind is StatusKind.CUSTOM
    assert state.store.get(task_id).status.value == "Waiting-on-Legal"
    assert not state.workflow.is_done(task_id)


@pytest.mark.parametrize("bad", ["", "   ", None, 3])
def test_malformed_status_is_an_invalid_transition(state, bad) -> None:
    task_id = state.store.create(title="a")
    with pytest.raises(InvalidTransitionError):
        state.workflow.set_status(task_id, bad)
    assert issubclass(InvalidTransitionError, ValidationError)
    assert state.store.get(task_id).status.is_pending


def test_unknown_target_raises_not_found(state) -> None:
    with pytest.raises(NotFoundError):
        state.workflow.set_status(5, "done")


def test_status_changes_are_timestamped(state, clock) -> None:
    task_id = state.store.create(title="a")
    clock.advance(10)
    first = state.workflow.set_status(task_id, "in-progress")
    assert first.status_changed_at == clock.now

    clock.advance(10)
    same = state.workflow.set_status(task_id, "in-progress")
    assert same.status_changed_at == first.status_changed_at
    assert same.updated_at == clock.now


def test_done_may_be_set_out_of_dependency_order(state) -> None:
    base = state.store.create(title="base")
    dependent = state.store.create(title="dependent", dependencies=[base])
    state.workflow.set_status(dependent, "done")
    assert state.workflow.is_done(dependent)
    assert not state.workflow.is_done(base)


def test_parent_done_does_not_cascade_and_completion_is_derived(state) -> None:
    parent = state.store.create(title="parent")
    for title in ("a", "b", "c", "d"):
        state.store.add_subtask(parent, title=title)

    state.workflow.set_status(parent, "done")
    assert all(s.status.is_pending for s in state.store.get(parent).subtasks)

    state.workflow.set_status("1.1", "done")
    state.workflow.set_status("1.3", "done")
    progress = state.workflow.completion(parent)
    assert (progress.done, progress.total) == (2, 4)
    assert progress.percent == 50.0
    assert not progress.complete

    with pytest.raises(ValidationError):
        state.workflow.completion("1.1")
