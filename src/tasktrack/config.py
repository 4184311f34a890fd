# src/tasktrack/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing is required at import time; every value has a default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKTRACK"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths ----
    data_dir: Path
    tasks_path: Path
    report_path: Path

    # ---- Engine defaults ----
    default_priority: str
    complexity_threshold: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasktrack")
        log_level = _env(_k("LOG_LEVEL"), "WARNING")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasktrack"))
        tasks_path = _env_path(_k("TASKS_PATH"), data_dir / "tasks.json")
        report_path = _env_path(_k("REPORT_PATH"), data_dir / "complexity-report.json")

        default_priority = _env(_k("DEFAULT_PRIORITY"), "medium").strip().lower() or "medium"
        # Scores live on a 1..10 scale.
        complexity_threshold = max(1, min(10, _env_int(_k("COMPLEXITY_THRESHOLD"), 5)))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_path=tasks_path,
            report_path=report_path,
            default_priority=default_priority,
            complexity_threshold=complexity_threshold,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
