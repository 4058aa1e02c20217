"""Docker Compose adapter.

Every container operation the orchestrator performs (build, start, stop,
exec, copy) goes through ``ContainerRuntime`` so release logic can be tested
against a fake runtime.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from hotfix.core.result import Err, Ok, Result
from hotfix.platform.process import ProcessError
from hotfix.platform.process import run as run_process
from hotfix.platform.process import run_silent

__all__ = ["ComposeRuntime", "ContainerRuntime"]

_QUERY_TIMEOUT_SECONDS = 30.0
_BUILD_TIMEOUT_SECONDS = 30 * 60.0
_UP_TIMEOUT_SECONDS = 5 * 60.0
_EXEC_TIMEOUT_SECONDS = 30 * 60.0


class ContainerRuntime(Protocol):
    """Container operations used by release and sync workflows."""

    def is_running(self, service: str) -> bool: ...

    def build(self, service: str) -> Result[None, ProcessError]: ...

    def up(self, service: str, *, recreate: bool = False) -> Result[None, ProcessError]: ...

    def stop(self, service: str) -> Result[None, ProcessError]: ...

    def service_exec(self, service: str, cmd: list[str]) -> Result[str, ProcessError]:
        """Run cmd inside a compose service (no TTY)."""
        ...

    def container_exec(
        self,
        container: str,
        cmd: list[str],
        *,
        user: str | None = None,
        stream: bool = False,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        """Run cmd inside a named container; ``stream`` shows output live.

        ``timeout`` defaults to the long limit used for pipeline steps.
        """
        ...

    def copy_into(self, container: str, src: Path, dest: str) -> Result[None, ProcessError]: ...

    def prune_images(self) -> Result[None, ProcessError]: ...


class ComposeRuntime:
    """ContainerRuntime backed by the docker CLI, run from the workspace root."""

    def __init__(self, root: Path) -> None:
        self._root = root

    def version(self) -> Result[str, ProcessError]:
        return self._run(["docker", "compose", "version"])

    def daemon_info(self) -> Result[str, ProcessError]:
        return self._run(["docker", "info"])

    def is_running(self, service: str) -> bool:
        result = self._run(
            ["docker", "compose", "ps", "--status", "running", "--services", service]
        )
        match result:
            case Ok(stdout):
                return service in {ln.strip() for ln in stdout.splitlines()}
            case Err(_):
                return False

    def build(self, service: str) -> Result[None, ProcessError]:
        return run_silent(
            ["docker", "compose", "build", service],
            cwd=self._root,
            timeout=_BUILD_TIMEOUT_SECONDS,
        )

    def up(self, service: str, *, recreate: bool = False) -> Result[None, ProcessError]:
        cmd = ["docker", "compose", "up", "-d", "--no-deps"]
        if recreate:
            cmd.append("--force-recreate")
        cmd.append(service)
        result = self._run(cmd, timeout=_UP_TIMEOUT_SECONDS)
        return result.map(lambda _: None)

    def stop(self, service: str) -> Result[None, ProcessError]:
        result = self._run(["docker", "compose", "stop", service], timeout=_UP_TIMEOUT_SECONDS)
        return result.map(lambda _: None)

    def service_exec(self, service: str, cmd: list[str]) -> Result[str, ProcessError]:
        return self._run(["docker", "compose", "exec", "-T", service, *cmd])

    def container_exec(
        self,
        container: str,
        cmd: list[str],
        *,
        user: str | None = None,
        stream: bool = False,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        full = ["docker", "exec"]
        if user is not None:
            full.extend(["-u", user])
        full.extend([container, *cmd])
        limit = _EXEC_TIMEOUT_SECONDS if timeout is None else timeout
        if stream:
            result = run_silent(full, cwd=self._root, timeout=limit)
            return result.map(lambda _: "")
        return self._run(full, timeout=limit)

    def copy_into(self, container: str, src: Path, dest: str) -> Result[None, ProcessError]:
        result = self._run(["docker", "cp", str(src), f"{container}:{dest}"])
        return result.map(lambda _: None)

    def prune_images(self) -> Result[None, ProcessError]:
        result = self._run(["docker", "image", "prune", "-f"])
        return result.map(lambda _: None)

    def _run(
        self, cmd: list[str], *, timeout: float = _QUERY_TIMEOUT_SECONDS
    ) -> Result[str, ProcessError]:
        return run_process(cmd, cwd=self._root, timeout=timeout)
