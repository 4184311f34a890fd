# src/tasktrack/cli/commands.py

from __future__ import annotations

import logging
from typing import Optional

import click

from ..core.errors import ValidationError
from ..core.state import AppState
from ..tasks.dependency_graph import ViolationKind
from ..tasks.task_api import import_tasks, load_plan_file
from ..tasks.task_models import Subtask, Task, parse_ref

logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    "pending": "○",
    "in-progress": "►",
    "done": "✓",
    "deferred": "⏸",
}


class CommandRegistry:
    """
    Command registry used by the CLI entrypoint (help, list, next, ...).

    Each command is a click.Command whose callback returns the reply text;
    the registry resolves names and aliases and runs the command with the
    AppState as the click context object.
    """

    def __init__(self) -> None:
        self._commands: dict[str, click.Command] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        command: click.Command,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._commands[key] = command
        self._help[key] = help_text
        for alias in aliases:
            self._commands[alias.lower()] = command

    def knows(self, name: str) -> bool:
        return name.lower() in self._commands

    def handle(self, state: AppState, argv: list[str]) -> str:
        """
        Handle ["command", "arg", ...].
        Returns the text to print; engine errors propagate to the caller,
        argument errors are raised as ValidationError.
        """
        if not argv:
            return "Empty command. Use help to list available commands."

        name = argv[0].lower()
        command = self._commands.get(name)
        if not command:
            return f"Unknown command: {name}. Use help to list available commands."

        logger.debug("Command %s args=%s", name, argv[1:])
        try:
            reply = command.main(args=argv[1:], prog_name=name, standalone_mode=False, obj=state)
        except click.ClickException as exc:
            raise ValidationError(exc.format_message()) from None
        # --help prints through click and returns an exit code instead of text.
        return reply if isinstance(reply, str) else ""

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  {name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting helpers ----


def _csv(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def _format_item(item: Task | Subtask, indent: str = "") -> str:
    icon = _STATUS_ICONS.get(item.status.value, "?")
    line = f"{indent}{icon} {item.ref} [{item.status.value}] ({item.priority.value}) {item.title}"
    if item.dependencies:
        line += f"  <- {', '.join(str(d) for d in item.dependencies)}"
    return line


def _format_details(item: Task | Subtask) -> str:
    lines = [
        f"{item.ref}: {item.title}",
        f"  status:   {item.status.value}",
        f"  priority: {item.priority.value}",
        f"  depends:  {', '.join(str(d) for d in item.dependencies) or '-'}",
    ]
    if item.description:
        lines.append(f"  description: {item.description}")
    if item.test_strategy:
        lines.append(f"  test strategy: {item.test_strategy}")
    if item.details:
        lines.append("  details:")
        lines.extend(f"    {ln}" for ln in item.details.splitlines())
    if isinstance(item, Task) and item.subtasks:
        lines.append("  subtasks:")
        lines.extend(_format_item(s, indent="    ") for s in item.subtasks)
    return "\n".join(lines)


# ---- commands ----


@click.command(name="help")
def cmd_help() -> str:
    return registry.build_help()


@click.command(name="list")
@click.option("--status", default=None, help="Comma separated statuses")
@click.option("--priority", default=None, help="Comma separated priorities")
@click.option("--subtasks", is_flag=True, help="Include subtasks")
@click.pass_context
def cmd_list(ctx: click.Context, status: Optional[str], priority: Optional[str], subtasks: bool) -> str:
    state: AppState = ctx.obj
    items = state.store.list(status=_csv(status) or None, priority=_csv(priority) or None)
    if not items:
        return "No tasks."

    lines = []
    for task in items:
        lines.append(_format_item(task))
        if subtasks and isinstance(task, Task):
            lines.extend(_format_item(s, indent="    ") for s in task.subtasks)
    return "\n".join(lines)


@click.command(name="show")
@click.argument("ref")
@click.pass_context
def cmd_show(ctx: click.Context, ref: str) -> str:
    state: AppState = ctx.obj
    item = state.store.get(ref)
    text = _format_details(item)
    if isinstance(item, Task) and item.subtasks:
        progress = state.workflow.completion(item.id)
        text += f"\n  progress: {progress.done}/{progress.total} ({progress.percent:.0f}%)"
    return text


@click.command(name="add")
@click.argument("title", nargs=-1, required=True)
@click.option("--description", default="")
@click.option("--details", default="")
@click.option("--priority", default=None)
@click.option("--deps", default=None, help="Comma separated ids, e.g. 1,2.1")
@click.option("--test", "test_strategy", default="", help="Test strategy")
@click.pass_context
def cmd_add(
    ctx: click.Context,
    title: tuple[str, ...],
    description: str,
    details: str,
    priority: Optional[str],
    deps: Optional[str],
    test_strategy: str,
) -> str:
    state: AppState = ctx.obj
    task_id = state.store.create(
        title=" ".join(title),
        description=description,
        details=details,
        priority=priority,
        dependencies=_csv(deps),
        test_strategy=test_strategy,
    )
    return f"Created task {task_id}."


@click.command(name="subtask")
@click.argument("parent")
@click.argument("title", nargs=-1, required=True)
@click.option("--description", default="")
@click.option("--details", default="")
@click.option("--priority", default=None)
@click.option("--deps", default=None, help="Comma separated ids, e.g. 1.1,2")
@click.option("--test", "test_strategy", default="", help="Test strategy")
@click.pass_context
def cmd_subtask(
    ctx: click.Context,
    parent: str,
    title: tuple[str, ...],
    description: str,
    details: str,
    priority: Optional[str],
    deps: Optional[str],
    test_strategy: str,
) -> str:
    state: AppState = ctx.obj
    parent_id = parse_ref(parent)
    if not isinstance(parent_id, int):
        raise ValidationError(f"parent must be a task id, got {parent!r}")
    sub = state.store.add_subtask(
        parent_id,
        title=" ".join(title),
        description=description,
        details=details,
        priority=priority,
        dependencies=_csv(deps),
        test_strategy=test_strategy,
    )
    return f"Created subtask {sub.id}."


@click.command(name="update")
@click.argument("ref")
@click.option("--title", default=None)
@click.option("--description", default=None)
@click.option("--priority", default=None)
@click.option("--status", default=None)
@click.option("--test", "test_strategy", default=None, help="Test strategy")
@click.pass_context
def cmd_update(ctx: click.Context, ref: str, **fields: Optional[str]) -> str:
    state: AppState = ctx.obj
    patch = {k: v for k, v in fields.items() if v is not None}
    if not patch:
        raise ValidationError("nothing to update")
    item = state.store.update(ref, patch)
    return f"Updated {item.ref}."


@click.command(name="note")
@click.argument("ref")
@click.argument("text", nargs=-1, required=True)
@click.pass_context
def cmd_note(ctx: click.Context, ref: str, text: tuple[str, ...]) -> str:
    state: AppState = ctx.obj
    item = state.store.append_details(ref, " ".join(text))
    return f"Appended note to {item.ref}."


@click.command(name="status")
@click.argument("refs")
@click.argument("status")
@click.pass_context
def cmd_status(ctx: click.Context, refs: str, status: str) -> str:
    """
    status 3 done       -> set one
    status 3,4.1 done   -> set several (each in its own transaction)
    """
    state: AppState = ctx.obj
    lines = []
    for ref in _csv(refs):
        item = state.workflow.set_status(ref, status)
        lines.append(f"{item.ref} -> {item.status.value}")
    return "\n".join(lines)


@click.command(name="delete")
@click.argument("ref")
@click.option("--cascade", is_flag=True, help="Also drop dependencies pointing at the item")
@click.pass_context
def cmd_delete(ctx: click.Context, ref: str, cascade: bool) -> str:
    state: AppState = ctx.obj
    pruned = state.store.delete(ref, cascade=cascade)
    text = f"Deleted {ref}."
    if pruned:
        text += "\nRemoved dependencies: " + ", ".join(f"{s} -> {t}" for s, t in pruned)
    return text


@click.command(name="depend")
@click.argument("ref")
@click.argument("depends_on")
@click.pass_context
def cmd_depend(ctx: click.Context, ref: str, depends_on: str) -> str:
    ctx.obj.graph.add_dependency(ref, depends_on)
    return f"{ref} now depends on {depends_on}."


@click.command(name="undepend")
@click.argument("ref")
@click.argument("depends_on")
@click.pass_context
def cmd_undepend(ctx: click.Context, ref: str, depends_on: str) -> str:
    ctx.obj.graph.remove_dependency(ref, depends_on)
    return f"{ref} no longer depends on {depends_on}."


@click.command(name="validate")
@click.pass_context
def cmd_validate(ctx: click.Context) -> str:
    violations = ctx.obj.graph.validate()
    if not violations:
        return "Dependencies OK."
    lines = [f"{len(violations)} dependency issue(s):"]
    lines.extend(f"  - {v.describe()}" for v in violations)
    return "\n".join(lines)


@click.command(name="fix")
@click.pass_context
def cmd_fix(ctx: click.Context) -> str:
    state: AppState = ctx.obj
    repairs = state.graph.fix()
    lines = [f"  - {r.describe()}" for r in repairs]
    cycles = [v for v in state.graph.validate() if v.kind is ViolationKind.CYCLE]
    lines.extend(f"  ! {v.describe()} (fix manually)" for v in cycles)
    if not lines:
        return "Nothing to fix."
    return f"Applied {len(repairs)} fix(es):\n" + "\n".join(lines)


@click.command(name="next")
@click.pass_context
def cmd_next(ctx: click.Context) -> str:
    suggestion = ctx.obj.selector.suggest()
    if suggestion is None:
        return "No eligible task: everything is done or blocked."
    text = "Next: " + _format_details(suggestion.item)
    if suggestion.open_subtasks:
        text += "\n  open subtasks: " + ", ".join(str(s) for s in suggestion.open_subtasks)
    return text


@click.command(name="order")
@click.pass_context
def cmd_order(ctx: click.Context) -> str:
    return " ".join(str(r) for r in ctx.obj.graph.execution_order()) or "No tasks."


@click.command(name="score")
@click.argument("ref")
@click.pass_context
def cmd_score(ctx: click.Context, ref: str) -> str:
    return f"{ref}: complexity {ctx.obj.advisor.score(ref)}/10"


@click.command(name="analyze")
@click.option("--threshold", type=int, default=None, help="Score at which expansion is recommended")
@click.option("--save", is_flag=True, help="Write the report to the configured report path")
@click.pass_context
def cmd_analyze(ctx: click.Context, threshold: Optional[int], save: bool) -> str:
    state: AppState = ctx.obj
    report = state.advisor.analyze(threshold)
    if not report.entries:
        return "No open tasks to analyze."
    lines = [f"Complexity (threshold {report.threshold}):"]
    for e in report.entries:
        mark = "expand" if e.expand else "ok"
        lines.append(
            f"  {e.task_id:>4} {e.score:>2}/10 {mark:<6} ~{e.recommended_subtasks} subtasks  {e.title}"
        )
    if save:
        path = state.advisor.save_report(report, state.settings.report_path)  # type: ignore[attr-defined]
        lines.append(f"Report saved to {path}")
    return "\n".join(lines)


@click.command(name="expand")
@click.argument("ref")
@click.argument("count", type=int, required=False)
@click.option("--priority", default=None)
@click.option("--replace", is_flag=True, help="Clear existing subtasks first")
@click.pass_context
def cmd_expand(ctx: click.Context, ref: str, count: Optional[int], priority: Optional[str], replace: bool) -> str:
    created = ctx.obj.advisor.expand(ref, count, priority=priority, replace=replace)
    return f"Added subtasks: {', '.join(str(s.id) for s in created)}"


@click.command(name="clear")
@click.argument("ref")
@click.pass_context
def cmd_clear(ctx: click.Context, ref: str) -> str:
    removed = ctx.obj.advisor.clear_subtasks(ref)
    return f"Removed {removed} subtask(s) from {ref}."


@click.command(name="import")
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_context
def cmd_import(ctx: click.Context, path: str) -> str:
    created = import_tasks(ctx.obj.store, load_plan_file(path))
    return f"Imported {len(created)} task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="List tasks: list [--status s] [--priority p] [--subtasks].", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show one task or subtask: show 3 | show 3.1.")
registry.register("add", cmd_add, help_text="Create a task: add <title> [--priority p] [--deps 1,2].")
registry.register("subtask", cmd_subtask, help_text="Add a subtask: subtask <parent> <title>.")
registry.register("update", cmd_update, help_text="Patch fields: update <id> --title t --priority p.")
registry.register("note", cmd_note, help_text="Append a timestamped note to details: note <id> <text>.")
registry.register("status", cmd_status, help_text="Set status: status <id[,id]> <pending|in-progress|done|deferred|...>.")
registry.register("delete", cmd_delete, help_text="Delete a task or subtask: delete <id> [--cascade].", aliases=["rm"])
registry.register("depend", cmd_depend, help_text="Add dependency: depend <id> <depends_on>.")
registry.register("undepend", cmd_undepend, help_text="Remove dependency: undepend <id> <depends_on>.")
registry.register("validate", cmd_validate, help_text="Report cycles, dangling and self references.")
registry.register("fix", cmd_fix, help_text="Remove dangling/self/duplicate dependencies (cycles are reported).")
registry.register("next", cmd_next, help_text="Show the next eligible task.")
registry.register("order", cmd_order, help_text="Print a dependency-respecting execution order.")
registry.register("score", cmd_score, help_text="Complexity score of one task: score <id>.")
registry.register("analyze", cmd_analyze, help_text="Complexity report: analyze [--threshold n] [--save].")
registry.register("expand", cmd_expand, help_text="Append subtasks: expand <id> [count] [--replace].")
registry.register("clear", cmd_clear, help_text="Remove all subtasks of a task: clear <id>.")
registry.register("import", cmd_import, help_text="Bulk import tasks from JSON: import <plan.json>.")
