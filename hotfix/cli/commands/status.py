"""Status command - show which slot serves traffic and what is pending."""

from __future__ import annotations

from datetime import datetime

from hotfix.cli.context import CLIContext, build_context
from hotfix.output.console import Style
from hotfix.release.model import Slot, SlotNames
from hotfix.release.rollback import RollbackTaskStore
from hotfix.release.state import ColorStateStore
from hotfix.runtime.compose import ComposeRuntime, ContainerRuntime


def status() -> None:
    """Show the active slot, state file age and pending rollback tasks."""
    ctx = build_context()
    show_status(ctx, ComposeRuntime(ctx.workspace.root))


def show_status(ctx: CLIContext, runtime: ContainerRuntime, now: datetime | None = None) -> None:
    console = ctx.console
    slots = ctx.config.slots
    state_dir = ctx.workspace.resolve(slots.state_dir)
    store = ColorStateStore(
        state_dir / slots.state_file,
        ctx.workspace.resolve(slots.router_generated),
        slots,
    )

    console.print(f"workspace: {ctx.workspace.root}", Style.DIM)
    console.header("Slots")

    state = store.read_state()
    router = store.router_slot()
    if state is None:
        active = store.get_active()
        console.warning(f"state file missing or unreadable; inferred active={active}")
    else:
        active = state.active
        age = (now or datetime.now()) - state.updated_at
        console.print(f"active: {active} (recorded {_format_age(age.total_seconds())} ago)")

    if router is None:
        console.warning("router config does not name a slot upstream")
    elif router != active:
        console.warning(f"router config points at {router}, state file says {active}")

    for slot in Slot:
        names = SlotNames.for_slot(slot, slots)
        running = runtime.is_running(names.service)
        marker = "*" if slot == active else " "
        console.print(
            f"{marker} {names.service}: {'running' if running else 'stopped'}",
            Style.SUCCESS if running else Style.DIM,
        )

    console.header("Rollback tasks")
    pending = RollbackTaskStore(state_dir / "rollback").pending()
    if not pending:
        console.print("none", Style.DIM)
    for task in pending:
        service = SlotNames.for_slot(task.slot_to_stop, slots).service
        flag = " (cancelled)" if task.cancelled else ""
        console.print(
            f"{task.id}: stop {service} at {task.fires_at.isoformat(timespec='seconds')}{flag}"
        )


def _format_age(seconds: float) -> str:
    seconds = max(0, int(seconds))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h{(seconds % 3600) // 60:02d}m"
    return f"{seconds // 86400}d"
