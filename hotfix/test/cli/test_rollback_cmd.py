from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
import typer

from hotfix.cli.context import CLIContext
from hotfix.core.config import Config
from hotfix.core.errors import ErrorCode
from hotfix.core.workspace import Workspace
from hotfix.output.console import MockConsole
from hotfix.release.model import RollbackTask, Slot
from hotfix.release.rollback import RollbackTaskStore


def _ctx(tmp_path: Path) -> CLIContext:
    return CLIContext(workspace=Workspace(root=tmp_path), config=Config(), console=MockConsole())


def _save_task(tmp_path: Path) -> RollbackTask:
    task = RollbackTask(
        id="blue-to-green-20240501120000",
        scheduled_at=datetime(2024, 5, 1, 12, 0, 0),
        window_seconds=300,
        expected_active=Slot.GREEN,
        slot_to_stop=Slot.BLUE,
    )
    RollbackTaskStore(tmp_path / "deploy-state" / "rollback").save(task)
    return task


def test_list_empty(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import hotfix.cli.commands.rollback as rollback_cmd

    ctx = _ctx(tmp_path)
    monkeypatch.setattr(rollback_cmd, "build_context", lambda: ctx)

    rollback_cmd.list_tasks()

    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.messages == ["no pending rollback tasks"]


def test_list_shows_task(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import hotfix.cli.commands.rollback as rollback_cmd

    ctx = _ctx(tmp_path)
    task = _save_task(tmp_path)
    monkeypatch.setattr(rollback_cmd, "build_context", lambda: ctx)

    rollback_cmd.list_tasks()

    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.find(f"{task.id}: stop frontend-blue at 2024-05-01T12:05:00")
    assert ctx.console.find("expects active=green, scheduled")


def test_cancel_flags_task(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import hotfix.cli.commands.rollback as rollback_cmd

    ctx = _ctx(tmp_path)
    task = _save_task(tmp_path)
    monkeypatch.setattr(rollback_cmd, "build_context", lambda: ctx)

    rollback_cmd.cancel(task.id)

    store = RollbackTaskStore(tmp_path / "deploy-state" / "rollback")
    assert store.pending()[0].cancelled
    assert isinstance(ctx.console, MockConsole)
    assert "OK cancelled; frontend-blue keeps running" in ctx.console.messages


def test_cancel_unknown_task(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import hotfix.cli.commands.rollback as rollback_cmd

    ctx = _ctx(tmp_path)
    monkeypatch.setattr(rollback_cmd, "build_context", lambda: ctx)

    with pytest.raises(typer.Exit) as exc:
        rollback_cmd.cancel("nope")

    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)
    assert isinstance(ctx.console, MockConsole)
    assert "hint: hotfix rollback list" in ctx.console.messages
