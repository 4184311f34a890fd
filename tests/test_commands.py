# tests/test_commands.py

from __future__ import annotations

import json

import click
import pytest

from tasktrack.cli import main as cli_main
from tasktrack.cli.commands import CommandRegistry, registry
from tasktrack.core.errors import ConflictError, ValidationError


def test_command_registry_routes_names_and_aliases(state) -> None:
    reg = CommandRegistry()
    seen: list[tuple[str, bool]] = []

    @click.command(name="go")
    @click.argument("where")
    @click.option("--fast", is_flag=True)
    @click.pass_context
    def go(ctx: click.Context, where: str, fast: bool) -> str:
        assert ctx.obj is state
        seen.append((where, fast))
        return "ok"

    reg.register("go", go, "go somewhere", aliases=["g"])

    assert reg.handle(state, ["go", "x"]) == "ok"
    assert reg.handle(state, ["G", "y", "--fast"]) == "ok"
    assert seen == [("x", False), ("y", True)]
    assert reg.knows("g") and not reg.knows("stop")
    assert "go - go somewhere" in reg.build_help()

    with pytest.raises(ValidationError, match="--slow"):
        reg.handle(state, ["go", "x", "--slow"])
    with pytest.raises(ValidationError):
        reg.handle(state, ["go"])


def test_command_registry_unknown_and_empty(state) -> None:
    reg = CommandRegistry()
    assert "Unknown command" in reg.handle(state, ["nope"])
    assert "Empty command" in reg.handle(state, [])


def test_add_depend_next_flow(state) -> None:
    assert registry.handle(state, ["add", "Set", "up", "repo", "--priority", "high"]) == "Created task 1."
    assert registry.handle(state, ["add", "Write", "API", "--deps", "1"]) == "Created task 2."
    assert registry.handle(state, ["subtask", "2", "Routes", "--priority", "low"]) == "Created subtask 2.1."

    assert registry.handle(state, ["next"]).startswith("Next: 1: Set up repo")
    assert registry.handle(state, ["status", "1", "done"]) == "1 -> done"
    reply = registry.handle(state, ["next"])
    assert reply.startswith("Next: 2: Write API")
    assert "open subtasks: 2.1" in reply

    listing = registry.handle(state, ["list", "--subtasks"])
    assert "1 [done] (high) Set up repo" in listing
    assert "2.1 [pending] (low) Routes" in listing
    assert registry.handle(state, ["order"]) == "1 2 2.1"


def test_delete_conflict_and_cascade(state) -> None:
    registry.handle(state, ["add", "base"])
    registry.handle(state, ["add", "dependent", "--deps", "1"])

    with pytest.raises(ConflictError):
        registry.handle(state, ["delete", "1"])

    reply = registry.handle(state, ["rm", "1", "--cascade"])
    assert reply == "Deleted 1.\nRemoved dependencies: 2 -> 1"


def test_bad_arguments_raise_validation_errors(state) -> None:
    with pytest.raises(ValidationError):
        registry.handle(state, ["add"])
    with pytest.raises(ValidationError):
        registry.handle(state, ["list", "--bogus"])
    with pytest.raises(ValidationError):
        registry.handle(state, ["expand", "1", "many"])
    with pytest.raises(ValidationError):
        registry.handle(state, ["update", "1"])
    with pytest.raises(ValidationError):
        registry.handle(state, ["update", "1", "--details", "rewritten"])


def test_expand_analyze_and_clear_commands(state) -> None:
    registry.handle(state, ["add", "Big", "job"])
    assert registry.handle(state, ["expand", "1", "3"]) == "Added subtasks: 1.1, 1.2, 1.3"
    assert "progress: 0/3 (0%)" in registry.handle(state, ["show", "1"])

    reply = registry.handle(state, ["analyze", "--threshold", "1", "--save"])
    assert "expand" in reply
    saved = json.loads(state.settings.report_path.read_text("utf-8"))
    assert saved["entries"][0]["task_id"] == 1

    assert registry.handle(state, ["clear", "1"]) == "Removed 3 subtask(s) from 1."


def test_validate_and_fix_on_clean_store(state) -> None:
    assert registry.handle(state, ["validate"]) == "Dependencies OK."
    assert registry.handle(state, ["fix"]) == "Nothing to fix."


def test_import_command(state, tmp_path) -> None:
    plan = tmp_path / "plan.json"
    plan.write_text(json.dumps({"tasks": [{"title": "a"}, {"title": "b", "dependencies": [1]}]}), "utf-8")
    assert registry.handle(state, ["import", str(plan)]) == "Imported 2 task(s)."
    assert state.store.get(2).dependencies == [1]


@pytest.fixture()
def cli(monkeypatch, settings):
    monkeypatch.setattr(cli_main, "get_settings", lambda: settings)
    monkeypatch.setattr(cli_main, "setup_logging", lambda **_: None)
    return cli_main.main


def test_main_exit_codes(cli, capsys) -> None:
    assert cli(["add", "First", "task"]) == 0
    assert capsys.readouterr().out.strip() == "Created task 1."

    assert cli(["frobnicate"]) == 2
    assert "Unknown command" in capsys.readouterr().err

    assert cli(["show", "9"]) == 1
    assert capsys.readouterr().err.startswith("Error:")

    assert cli([]) == 0
    assert "Available commands:" in capsys.readouterr().out
