"""Tests for hotfix.release.preflight module."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from hotfix.core.result import Err, Ok, Result
from hotfix.core.workspace import Workspace
from hotfix.output.console import MockConsole
from hotfix.platform.process import ProcessError
from hotfix.release.preflight import (
    CheckResult,
    CheckStatus,
    check_disk,
    check_docker,
    check_env_file,
    ensure_submodules,
    run_preflight,
)
from hotfix.test.release.fakes import FakeRepository


@dataclass
class FakeDaemon:
    version_ok: bool = True
    daemon_ok: bool = True

    def version(self) -> Result[str, ProcessError]:
        if not self.version_ok:
            return Err(ProcessError(("docker", "compose", "version"), 1, "", "unknown command"))
        return Ok("Docker Compose version v2.27.0\n")

    def daemon_info(self) -> Result[str, ProcessError]:
        if not self.daemon_ok:
            return Err(ProcessError(("docker", "info"), 1, "", "Cannot connect"))
        return Ok("Server Version: 26.1\n")


@dataclass
class Usage:
    total: int
    used: int


def _which(_: str) -> str | None:
    return "/usr/bin/docker"


class TestCheckDocker:
    def test_all_ok(self) -> None:
        results = check_docker(FakeDaemon(), which=_which)

        assert [r.name for r in results] == ["compose", "daemon"]
        assert all(r.status is CheckStatus.OK for r in results)
        assert results[0].message == "Docker Compose version v2.27.0"

    def test_not_installed(self) -> None:
        results = check_docker(FakeDaemon(), which=lambda _: None)
        assert [r.name for r in results] == ["docker"]
        assert results[0].is_error

    def test_compose_missing_stops(self) -> None:
        results = check_docker(FakeDaemon(version_ok=False), which=_which)
        assert [r.name for r in results] == ["compose"]
        assert results[0].is_error

    def test_daemon_down(self) -> None:
        results = check_docker(FakeDaemon(daemon_ok=False), which=_which)
        assert results[-1].is_error
        assert results[-1].hint == "sudo systemctl start docker"


class TestCheckDisk:
    def test_thresholds(self) -> None:
        assert check_disk(usage=lambda _: Usage(100, 50)).status is CheckStatus.OK
        assert check_disk(usage=lambda _: Usage(100, 85)).status is CheckStatus.WARNING
        assert check_disk(usage=lambda _: Usage(100, 95)).status is CheckStatus.ERROR

    def test_boundaries_are_exclusive(self) -> None:
        assert check_disk(usage=lambda _: Usage(100, 80)).status is CheckStatus.OK
        assert check_disk(usage=lambda _: Usage(100, 90)).status is CheckStatus.WARNING

    def test_unreadable_is_warning(self) -> None:
        def broken(_: Path) -> Usage:
            raise OSError("no such device")

        assert check_disk(usage=broken).status is CheckStatus.WARNING


def test_env_file(tmp_path: Path) -> None:
    workspace = Workspace(root=tmp_path)
    assert check_env_file(workspace).status is CheckStatus.WARNING
    (tmp_path / ".env").write_text("FRONTEND_PORT=3000\n", encoding="utf-8")
    assert check_env_file(workspace).status is CheckStatus.OK


class TestRunPreflight:
    def test_passes_with_warnings(self, tmp_path: Path) -> None:
        console = MockConsole()

        result = run_preflight(
            Workspace(root=tmp_path),
            FakeDaemon(),
            console,
            which=_which,
            usage=lambda _: Usage(100, 85),
        )

        assert result == Ok(None)
        assert console.has_warning()
        assert "hint: docker image prune -f" in console.messages

    def test_first_error_fails(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("", encoding="utf-8")

        result = run_preflight(
            Workspace(root=tmp_path),
            FakeDaemon(daemon_ok=False),
            MockConsole(),
            which=_which,
            usage=lambda _: Usage(100, 95),
        )

        assert isinstance(result, Err)
        assert result.error.kind == "precondition_failed"
        assert result.error.message.startswith("daemon:")

    def test_extra_checks(self, tmp_path: Path) -> None:
        result = run_preflight(
            Workspace(root=tmp_path),
            FakeDaemon(),
            MockConsole(),
            extra=[CheckResult.error("router", "template missing")],
            which=_which,
            usage=lambda _: Usage(100, 10),
        )
        assert isinstance(result, Err)
        assert result.error.message == "router: template missing"


class TestEnsureSubmodules:
    def test_noop_without_submodules(self) -> None:
        repo = FakeRepository()
        assert ensure_submodules(repo, MockConsole()) == Ok(None)  # type: ignore[arg-type]
        assert repo.calls == []

    def test_ready(self, tmp_path: Path) -> None:
        (tmp_path / "content" / ".git").mkdir(parents=True)
        repo = FakeRepository(
            path=tmp_path,
            submodules=["content"],
            submodule_lines=[(" ", "1111", "content")],
        )
        console = MockConsole()

        assert ensure_submodules(repo, console) == Ok(None)  # type: ignore[arg-type]
        assert repo.calls == ["submodule_sync", "submodule_update"]
        assert console.find("Submodules ready (1)")

    def test_dirty_submodule_fails(self, tmp_path: Path) -> None:
        (tmp_path / "content" / ".git").mkdir(parents=True)
        repo = FakeRepository(
            path=tmp_path,
            submodules=["content"],
            submodule_lines=[("+", "2222", "content")],
        )

        result = ensure_submodules(repo, MockConsole())  # type: ignore[arg-type]

        assert isinstance(result, Err)
        assert "+content" in result.error.message

    def test_update_failure(self, tmp_path: Path) -> None:
        repo = FakeRepository(path=tmp_path, submodules=["content"], failing={"submodule_update"})

        result = ensure_submodules(repo, MockConsole())  # type: ignore[arg-type]

        assert isinstance(result, Err)
        assert result.error.hint is not None

    def test_uninitialized_path(self, tmp_path: Path) -> None:
        repo = FakeRepository(path=tmp_path, submodules=["content"], submodule_lines=[(" ", "1", "content")])

        result = ensure_submodules(repo, MockConsole())  # type: ignore[arg-type]

        assert isinstance(result, Err)
        assert "not initialized" in result.error.message
