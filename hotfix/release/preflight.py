# SPDX-License-Identifier: MIT
"""Preflight checks run before any mutating release step.

Validates:
- docker CLI, compose plugin and a reachable daemon
- disk usage of the root filesystem
- presence of the compose ``.env`` file (warning only)
- nested content repositories (submodules) initialized and clean
"""

from __future__ import annotations

import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Protocol

from hotfix.core.result import Err, Ok, Result
from hotfix.core.workspace import Workspace
from hotfix.git.repository import Repository
from hotfix.output.console import ConsoleProtocol
from hotfix.platform.process import ProcessError
from hotfix.release.errors import ReleaseError

__all__ = [
    "CheckResult",
    "CheckStatus",
    "DockerDaemon",
    "check_disk",
    "check_docker",
    "check_env_file",
    "ensure_submodules",
    "run_preflight",
]

DISK_WARN_PERCENT = 80
DISK_FAIL_PERCENT = 90


class CheckStatus(Enum):
    OK = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Result of a single check.

    Attributes:
        name: Short identifier for what was checked (e.g., "docker", "disk")
        status: Whether the check passed, warned, or failed
        message: Human-readable result message
        hint: Optional fix command
    """

    name: str
    status: CheckStatus
    message: str
    hint: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status == CheckStatus.ERROR

    @classmethod
    def success(cls, name: str, message: str) -> CheckResult:
        return cls(name=name, status=CheckStatus.OK, message=message)

    @classmethod
    def warning(cls, name: str, message: str, hint: str | None = None) -> CheckResult:
        return cls(name=name, status=CheckStatus.WARNING, message=message, hint=hint)

    @classmethod
    def error(cls, name: str, message: str, hint: str | None = None) -> CheckResult:
        return cls(name=name, status=CheckStatus.ERROR, message=message, hint=hint)


class DockerDaemon(Protocol):
    def version(self) -> Result[str, ProcessError]: ...

    def daemon_info(self) -> Result[str, ProcessError]: ...


class DiskUsage(Protocol):
    @property
    def total(self) -> int: ...

    @property
    def used(self) -> int: ...


def check_docker(
    daemon: DockerDaemon,
    *,
    which: Callable[[str], str | None] = shutil.which,
) -> list[CheckResult]:
    """docker CLI, compose plugin, daemon; stops at the first failure."""
    if which("docker") is None:
        return [
            CheckResult.error(
                "docker",
                "docker is not installed",
                hint="https://docs.docker.com/engine/install/",
            )
        ]

    version = daemon.version()
    if isinstance(version, Err):
        return [
            CheckResult.error(
                "compose",
                "docker compose is not available",
                hint="Install the docker compose plugin",
            )
        ]
    lines = version.value.strip().splitlines()
    results = [CheckResult.success("compose", lines[0] if lines else "docker compose")]

    info = daemon.daemon_info()
    if isinstance(info, Err):
        results.append(
            CheckResult.error(
                "daemon",
                "docker daemon is not running or not accessible",
                hint="sudo systemctl start docker",
            )
        )
    else:
        results.append(CheckResult.success("daemon", "docker daemon reachable"))
    return results


def check_disk(
    path: Path = Path("/"),
    *,
    usage: Callable[[Path], DiskUsage] = shutil.disk_usage,
) -> CheckResult:
    """Fail above 90% used, warn above 80%."""
    try:
        disk = usage(path)
    except OSError as e:
        return CheckResult.warning("disk", f"cannot read disk usage of {path}: {e}")

    percent = int(disk.used * 100 / disk.total) if disk.total else 0
    if percent > DISK_FAIL_PERCENT:
        return CheckResult.error(
            "disk",
            f"disk usage is {percent}% (> {DISK_FAIL_PERCENT}%)",
            hint="docker system prune -a",
        )
    if percent > DISK_WARN_PERCENT:
        return CheckResult.warning(
            "disk",
            f"disk usage is {percent}% (> {DISK_WARN_PERCENT}%)",
            hint="docker image prune -f",
        )
    return CheckResult.success("disk", f"disk usage {percent}%")


def check_env_file(workspace: Workspace) -> CheckResult:
    if workspace.env_path.is_file():
        return CheckResult.success(".env", "present")
    return CheckResult.warning(
        ".env",
        f".env not found in {workspace.root}; compose falls back to defaults",
    )


def run_preflight(
    workspace: Workspace,
    daemon: DockerDaemon,
    console: ConsoleProtocol,
    *,
    extra: Sequence[CheckResult] = (),
    which: Callable[[str], str | None] = shutil.which,
    usage: Callable[[Path], DiskUsage] = shutil.disk_usage,
) -> Result[None, ReleaseError]:
    """Run all checks, print them, and fail on the first error."""
    console.header("Preflight")
    results = [
        *check_docker(daemon, which=which),
        check_disk(Path("/"), usage=usage),
        check_env_file(workspace),
        *extra,
    ]

    for result in results:
        match result.status:
            case CheckStatus.OK:
                console.success(f"{result.name}: {result.message}")
            case CheckStatus.WARNING:
                console.warning(f"{result.name}: {result.message}")
                if result.hint:
                    console.hint(result.hint)
            case CheckStatus.ERROR:
                console.error(f"{result.name}: {result.message}")

    for result in results:
        if result.is_error:
            return Err(
                ReleaseError(
                    kind="precondition_failed",
                    message=f"{result.name}: {result.message}",
                    hint=result.hint,
                )
            )
    return Ok(None)


def ensure_submodules(repo: Repository, console: ConsoleProtocol) -> Result[None, ReleaseError]:
    """Sync, initialize and verify every nested repository.

    A no-op without ``.gitmodules``. Content in a nested repository that is
    uninitialized or checked out at the wrong commit would be synced as-is,
    so any non-clean state is fatal.
    """
    paths = repo.submodule_paths()
    if not paths:
        return Ok(None)

    console.info("Ensuring git submodules are initialized...")
    sync = repo.submodule_sync()
    if isinstance(sync, Err):
        return Err(
            ReleaseError(
                kind="precondition_failed",
                message=f"git submodule sync failed: {sync.error.message}",
                hint="Check the submodule URLs in .gitmodules",
            )
        )

    update = repo.submodule_update()
    if isinstance(update, Err):
        return Err(
            ReleaseError(
                kind="precondition_failed",
                message=f"git submodule update failed: {update.error.message}",
                hint=(
                    "Check network/SSH access to the submodule remote, then run "
                    "git submodule update --init --recursive"
                ),
            )
        )

    status = repo.submodule_status()
    if isinstance(status, Err):
        return Err(
            ReleaseError(
                kind="precondition_failed",
                message=f"git submodule status failed: {status.error.message}",
            )
        )
    dirty = [s for s in status.value if not s.is_clean]
    if dirty:
        listing = ", ".join(f"{s.prefix}{s.path}" for s in dirty)
        return Err(
            ReleaseError(
                kind="precondition_failed",
                message=f"submodules not in a clean state: {listing}",
                hint="git submodule update --init --recursive",
            )
        )

    for rel in paths:
        if not (repo.path / rel / ".git").exists():
            return Err(
                ReleaseError(
                    kind="precondition_failed",
                    message=f"submodule path missing or not initialized: {rel}",
                    hint="git submodule update --init --recursive",
                )
            )

    console.success(f"Submodules ready ({len(paths)})")
    return Ok(None)
