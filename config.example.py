# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Keep machine-specific values in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TASKTRACK_APP_NAME": "App display name (default: tasktrack).",
    "TASKTRACK_LOG_LEVEL": "Console logging level (default: WARNING). The log file always gets DEBUG.",
    # Paths (gitignored)
    "TASKTRACK_DATA_DIR": "Local data directory (default: .local/tasktrack).",
    "TASKTRACK_TASKS_PATH": "Task document JSON path (default: <data_dir>/tasks.json).",
    "TASKTRACK_REPORT_PATH": (
        "Complexity report JSON path (default: <data_dir>/complexity-report.json)."
    ),
    # Engine defaults
    "TASKTRACK_DEFAULT_PRIORITY": "Priority for new tasks: high, medium or low (default: medium).",
    "TASKTRACK_COMPLEXITY_THRESHOLD": "Score (1..10) at which analyze recommends expansion (default: 5).",
}
