from __future__ import annotations

import os
from pathlib import Path

import typer

from hotfix import __version__
from hotfix.cli.commands.release import auto_cmd, content_sync_cmd, full_release_cmd
from hotfix.cli.commands.rollback import rollback_app
from hotfix.cli.commands.status import status
from hotfix.core.errors import ErrorCode
from hotfix.core.workspace import is_workspace_root


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command("content-sync")(content_sync_cmd)
app.command("articles", hidden=True)(content_sync_cmd)
app.command("full-release")(full_release_cmd)
app.command("frontend", hidden=True)(full_release_cmd)
app.command("auto")(auto_cmd)
app.command()(status)

# Sub-apps
app.add_typer(rollback_app, name="rollback", help="Inspect or cancel scheduled stops of the previous slot.")


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        help="Deployment checkout root (overrides auto detection)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if workspace is not None:
        try:
            root = workspace.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --workspace: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not root.is_dir() or not is_workspace_root(root):
            typer.echo(
                f"error: --workspace '{root}' is not a deployment checkout "
                "(missing hotfix.toml or compose file)",
                err=True,
            )
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ["HOTFIX_ROOT"] = str(root)


def main() -> None:
    app()
