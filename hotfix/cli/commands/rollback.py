from __future__ import annotations

from pathlib import Path

import typer

from hotfix.cli.commands._helpers import exit_with_code
from hotfix.cli.context import CLIContext, build_context
from hotfix.core.errors import ErrorCode
from hotfix.core.result import Err
from hotfix.output.console import RichConsole, Style
from hotfix.release.model import SlotNames
from hotfix.release.rollback import RollbackTaskStore, fire
from hotfix.release.state import ColorStateStore
from hotfix.runtime.compose import ComposeRuntime

rollback_app = typer.Typer(add_completion=False, no_args_is_help=True)


def _tasks(ctx: CLIContext) -> RollbackTaskStore:
    return RollbackTaskStore(ctx.workspace.resolve(ctx.config.slots.state_dir) / "rollback")


@rollback_app.command("list")
def list_tasks() -> None:
    """List scheduled stops of a previous slot."""
    ctx = build_context()
    tasks = _tasks(ctx)
    pending = tasks.pending()
    if not pending:
        ctx.console.print("no pending rollback tasks", Style.DIM)
        return
    for task in pending:
        service = SlotNames.for_slot(task.slot_to_stop, ctx.config.slots).service
        state = "cancelled" if task.cancelled else "scheduled"
        ctx.console.print(
            f"{task.id}: stop {service} at {task.fires_at.isoformat(timespec='seconds')} "
            f"(expects active={task.expected_active}, {state})"
        )


@rollback_app.command("cancel")
def cancel(task_id: str = typer.Argument(..., help="Task id from `hotfix rollback list`.")) -> None:
    """Keep the previous slot running: cancel its scheduled stop."""
    ctx = build_context()
    tasks = _tasks(ctx)
    cancelled = tasks.cancel(task_id)
    if cancelled is None:
        ctx.console.error(f"no pending rollback task: {task_id}")
        ctx.console.hint("hotfix rollback list")
        exit_with_code(ErrorCode.USER_ERROR)
    service = SlotNames.for_slot(cancelled.slot_to_stop, ctx.config.slots).service
    ctx.console.success(f"cancelled; {service} keeps running")
    ctx.console.hint(f"docker compose stop {service}")


@rollback_app.command("fire", hidden=True)
def fire_cmd(record: Path = typer.Argument(..., help="Task record written by the scheduler.")) -> None:
    """Worker entry point: wait out the window, then stop the previous slot."""
    ctx = build_context(console=RichConsole(timestamps=True))
    slots = ctx.config.slots
    state_dir = ctx.workspace.resolve(slots.state_dir)
    result = fire(
        record,
        tasks=RollbackTaskStore(record.parent),
        store=ColorStateStore(
            state_dir / slots.state_file,
            ctx.workspace.resolve(slots.router_generated),
            slots,
        ),
        runtime=ComposeRuntime(ctx.workspace.root),
        slots=slots,
        console=ctx.console,
    )
    if isinstance(result, Err):
        ctx.console.error(result.error)
        exit_with_code(ErrorCode.USER_ERROR)
