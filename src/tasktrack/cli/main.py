# src/tasktrack/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs exactly one command.
Command output goes to stdout; logs and errors go to stderr.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..cli.commands import registry
from ..config import get_settings
from ..core.errors import TaskTrackError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "WARNING")).upper()
    console_level = getattr(logging, level_name, logging.WARNING)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    args = list(sys.argv[1:] if argv is None else argv) or ["help"]
    if not registry.knows(args[0]):
        print(f"Unknown command: {args[0]}. Use help to list available commands.", file=sys.stderr)
        return 2

    try:
        state = create_initial_state(settings=settings)
        reply = registry.handle(state, args)
    except TaskTrackError as exc:
        logger.debug("Command %s failed", args[0], exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(reply)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
