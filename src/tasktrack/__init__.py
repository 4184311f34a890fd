"""tasktrack: task dependency graph and status-workflow engine."""

__version__ = "0.1.0"
