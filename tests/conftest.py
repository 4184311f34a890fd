# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasktrack.cli.bootstrap import create_initial_state
from tasktrack.core.state import AppState
from tasktrack.tasks.task_store import TaskStore

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's environment and .env.
    """
    data_dir = tmp_path / "data"
    return SimpleNamespace(
        app_name="tasktrack-test",
        log_level="WARNING",
        data_dir=data_dir,
        tasks_path=data_dir / "tasks.json",
        report_path=data_dir / "complexity-report.json",
        default_priority="medium",
        complexity_threshold=5,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def state(settings: SimpleNamespace, clock: FakeClock) -> AppState:
    """
    AppState wired exactly like the CLI does it.

    NOTE: the store writes a real JSON file under tmp_path because the
    persistence round-trip is part of what we want to test.
    """
    return create_initial_state(settings=settings, clock=clock)


@pytest.fixture()
def store(state: AppState) -> TaskStore:
    return state.store
