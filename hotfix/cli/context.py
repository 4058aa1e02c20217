from __future__ import annotations

import os
from dataclasses import dataclass
from typing import NoReturn

import typer

from hotfix.core.config import Config, apply_env, load_config_or_default
from hotfix.core.errors import ErrorCode
from hotfix.core.result import Err
from hotfix.core.workspace import Workspace, detect_workspace
from hotfix.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    workspace: Workspace
    config: Config
    console: ConsoleProtocol


def build_context(console: ConsoleProtocol | None = None) -> CLIContext:
    workspace_result = detect_workspace()
    if isinstance(workspace_result, Err):
        error = workspace_result.error
        typer.echo(f"error: {error.message}", err=True)
        if error.hint:
            typer.echo(f"hint: {error.hint}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    workspace = workspace_result.value

    config_result = load_config_or_default(workspace.config_path)
    if isinstance(config_result, Err):
        _config_exit(config_result.error.message, config_result.error.hint)
    config = config_result.value

    env_result = apply_env(config, os.environ)
    if isinstance(env_result, Err):
        _config_exit(env_result.error.message, env_result.error.hint)

    return CLIContext(
        workspace=workspace,
        config=env_result.value,
        console=console if console is not None else RichConsole(),
    )


def _config_exit(message: str, hint: str | None) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    if hint:
        typer.echo(f"hint: {hint}", err=True)
    raise typer.Exit(code=int(ErrorCode.USER_ERROR))
