"""Workspace detection and paths.

The workspace is the deployment checkout: the directory holding the compose
file, the content tree, the router template and the ``deploy-state/``
directory. It is found by walking up from the current directory until a
``hotfix.toml`` or a compose file is seen, unless ``HOTFIX_ROOT`` points at it.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .config import CONFIG_FILE_NAME
from .result import Err, Ok, Result

__all__ = [
    "Workspace",
    "WorkspaceError",
    "detect_workspace",
    "is_workspace_root",
]

_MARKERS = (CONFIG_FILE_NAME, "docker-compose.yml", "docker-compose.yaml", "compose.yaml", "compose.yml")


@dataclass(frozen=True)
class WorkspaceError:
    """Error when workspace cannot be detected."""

    message: str
    searched_from: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class Workspace:
    """A detected deployment checkout."""

    root: Path

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILE_NAME

    @property
    def env_path(self) -> Path:
        """Compose substitution file; docker compose loads it on its own."""
        return self.root / ".env"

    @property
    def changelog_path(self) -> Path:
        return self.root / "CHANGELOG.md"

    @property
    def gitmodules_path(self) -> Path:
        return self.root / ".gitmodules"

    def resolve(self, relative: str) -> Path:
        """Resolve a workspace-relative path from config."""
        return self.root / relative


def is_workspace_root(path: Path) -> bool:
    return any((path / marker).is_file() for marker in _MARKERS)


def detect_workspace(
    start: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Result[Workspace, WorkspaceError]:
    """Find the workspace root.

    Order: ``HOTFIX_ROOT`` (must be a directory), then upward search from
    ``start`` (defaults to the current directory).
    """
    env = os.environ if environ is None else environ

    override = env.get("HOTFIX_ROOT")
    if override:
        root = Path(override).expanduser().resolve()
        if not root.is_dir():
            return Err(
                WorkspaceError(
                    f"HOTFIX_ROOT is not a directory: {root}",
                    searched_from=root,
                )
            )
        return Ok(Workspace(root=root))

    origin = (start or Path.cwd()).resolve()
    for candidate in (origin, *origin.parents):
        if is_workspace_root(candidate):
            return Ok(Workspace(root=candidate))

    return Err(
        WorkspaceError(
            "no deployment workspace found (looked for hotfix.toml or a compose file)",
            searched_from=origin,
            hint="Run from the deployment checkout or pass --workspace PATH",
        )
    )
