# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

from tasktrack.config import Settings
from tasktrack.logging_setup import LOG_FILE_NAME, _ConsoleNoiseFilter, setup_logging


def test_settings_defaults_follow_data_dir(monkeypatch, tmp_path: Path) -> None:
    for name in ("TASKS_PATH", "REPORT_PATH", "COMPLEXITY_THRESHOLD", "DEFAULT_PRIORITY"):
        monkeypatch.delenv(f"TASKTRACK_{name}", raising=False)
    monkeypatch.setenv("TASKTRACK_DATA_DIR", str(tmp_path))

    settings = Settings.from_env()

    assert settings.tasks_path == tmp_path / "tasks.json"
    assert settings.report_path == tmp_path / "complexity-report.json"
    assert settings.complexity_threshold == 5
    assert settings.default_priority == "medium"


def test_settings_clamp_and_tolerate_bad_numbers(monkeypatch) -> None:
    monkeypatch.setenv("TASKTRACK_COMPLEXITY_THRESHOLD", "42")
    assert Settings.from_env().complexity_threshold == 10

    monkeypatch.setenv("TASKTRACK_COMPLEXITY_THRESHOLD", "lots")
    assert Settings.from_env().complexity_threshold == 5

    monkeypatch.setenv("TASKTRACK_DEFAULT_PRIORITY", " HIGH ")
    assert Settings.from_env().default_priority == "high"


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_keeps_own_logs_and_drops_library_noise() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("tasktrack.tasks.task_store", logging.INFO))
    assert not f.filter(_record("networkx", logging.WARNING))
    assert f.filter(_record("networkx", logging.ERROR))
    assert not f.filter(_record("py.warnings", logging.WARNING))


def test_setup_logging_replaces_handlers_and_writes_file(monkeypatch, tmp_path: Path) -> None:
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)

    setup_logging(log_dir=tmp_path / "logs")
    log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.ERROR)

    assert log_file == tmp_path / "logs" / LOG_FILE_NAME
    assert len(root.handlers) == 2
    logging.getLogger("tasktrack.tests").debug("hello from the engine")
    for handler in root.handlers:
        handler.flush()
    assert "hello from the engine" in log_file.read_text("utf-8")

    for handler in list(root.handlers):
        handler.close()
