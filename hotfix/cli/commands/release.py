from __future__ import annotations

import typer

from hotfix.cli.commands._helpers import cancel_on_interrupt, unwrap_or_exit
from hotfix.cli.context import build_context
from hotfix.release.workflow import ReleaseDeps, auto_release, content_sync, full_release


def content_sync_cmd(
    base: str | None = typer.Option(
        None,
        "--base",
        help="Revision to diff content against (default: ORIG_HEAD, then HEAD@{1}).",
    ),
) -> None:
    """Hot-sync content changes into the live slot (no restart)."""
    ctx = build_context()
    deps = ReleaseDeps.from_workspace(ctx.workspace, ctx.config, ctx.console)
    unwrap_or_exit(content_sync(deps, base), ctx.console)


def full_release_cmd() -> None:
    """Blue/green release: build and start the standby slot, then switch traffic."""
    ctx = build_context()
    deps = ReleaseDeps.from_workspace(ctx.workspace, ctx.config, ctx.console)
    with cancel_on_interrupt() as cancel:
        result = full_release(deps, cancel)
    unwrap_or_exit(result, ctx.console)


def auto_cmd() -> None:
    """Pick content-sync or full-release from the changes since the last pull."""
    ctx = build_context()
    deps = ReleaseDeps.from_workspace(ctx.workspace, ctx.config, ctx.console)
    with cancel_on_interrupt() as cancel:
        result = auto_release(deps, cancel)
    unwrap_or_exit(result, ctx.console)
