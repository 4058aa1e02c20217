"""Tests for hotfix.runtime.compose module."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from hotfix.core.result import Err, Ok, Result
from hotfix.platform.process import ProcessError
from hotfix.runtime import compose as compose_mod
from hotfix.runtime.compose import ComposeRuntime


class Recorder:
    def __init__(self, result: Result[str, ProcessError] | None = None) -> None:
        self.result: Result[str, ProcessError] = result if result is not None else Ok("")
        self.commands: list[list[str]] = []
        self.kwargs: list[dict[str, Any]] = []

    def __call__(self, cmd: list[str], **kwargs: Any) -> Result[Any, ProcessError]:
        self.commands.append(cmd)
        self.kwargs.append(kwargs)
        return self.result


@pytest.fixture
def run(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    recorder = Recorder()
    monkeypatch.setattr(compose_mod, "run_process", recorder)
    return recorder


@pytest.fixture
def silent(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    recorder = Recorder(Ok(None))  # type: ignore[arg-type]
    monkeypatch.setattr(compose_mod, "run_silent", recorder)
    return recorder


class TestIsRunning:
    def test_listed_service_is_running(self, run: Recorder, tmp_path: Path) -> None:
        run.result = Ok("frontend-green\n")

        assert ComposeRuntime(tmp_path).is_running("frontend-green") is True
        assert run.commands[0] == [
            "docker", "compose", "ps", "--status", "running", "--services", "frontend-green",
        ]
        assert run.kwargs[0]["cwd"] == tmp_path

    def test_empty_output_means_stopped(self, run: Recorder, tmp_path: Path) -> None:
        run.result = Ok("")
        assert ComposeRuntime(tmp_path).is_running("frontend-blue") is False

    def test_error_means_stopped(self, run: Recorder, tmp_path: Path) -> None:
        run.result = Err(ProcessError(("docker",), 1, "", "Cannot connect to the Docker daemon"))
        assert ComposeRuntime(tmp_path).is_running("frontend-blue") is False


class TestLifecycle:
    def test_build_streams_output(self, run: Recorder, silent: Recorder, tmp_path: Path) -> None:
        result = ComposeRuntime(tmp_path).build("frontend-green")

        assert isinstance(result, Ok)
        assert silent.commands == [["docker", "compose", "build", "frontend-green"]]
        assert run.commands == []

    def test_up_recreate(self, run: Recorder, tmp_path: Path) -> None:
        ComposeRuntime(tmp_path).up("frontend-green", recreate=True)
        assert run.commands[0] == [
            "docker", "compose", "up", "-d", "--no-deps", "--force-recreate", "frontend-green",
        ]

    def test_up_without_recreate(self, run: Recorder, tmp_path: Path) -> None:
        ComposeRuntime(tmp_path).up("nginx")
        assert run.commands[0] == ["docker", "compose", "up", "-d", "--no-deps", "nginx"]

    def test_stop_propagates_error(self, run: Recorder, tmp_path: Path) -> None:
        run.result = Err(ProcessError(("docker",), 1, "", "no such service"))

        result = ComposeRuntime(tmp_path).stop("frontend-blue")

        assert isinstance(result, Err)
        assert result.error.stderr == "no such service"


class TestExec:
    def test_service_exec_has_no_tty(self, run: Recorder, tmp_path: Path) -> None:
        run.result = Ok("syntax is ok\n")

        result = ComposeRuntime(tmp_path).service_exec("nginx", ["nginx", "-t"])

        assert result == Ok("syntax is ok\n")
        assert run.commands[0] == ["docker", "compose", "exec", "-T", "nginx", "nginx", "-t"]

    def test_container_exec_as_root(self, run: Recorder, tmp_path: Path) -> None:
        ComposeRuntime(tmp_path).container_exec("blog-frontend-blue", ["rm", "-f", "/app/x"], user="0")
        assert run.commands[0] == ["docker", "exec", "-u", "0", "blog-frontend-blue", "rm", "-f", "/app/x"]

    def test_container_exec_timeout(self, run: Recorder, tmp_path: Path) -> None:
        runtime = ComposeRuntime(tmp_path)
        runtime.container_exec("blog-frontend-green", ["node", "-e", "0"], timeout=5.0)
        runtime.container_exec("blog-frontend-green", ["node", "-e", "0"])

        assert run.kwargs[0]["timeout"] == 5.0
        assert run.kwargs[1]["timeout"] > 5.0

    def test_container_exec_stream(self, run: Recorder, silent: Recorder, tmp_path: Path) -> None:
        result = ComposeRuntime(tmp_path).container_exec(
            "blog-frontend-blue", ["npm", "run", "index"], stream=True
        )

        assert result == Ok("")
        assert silent.commands == [["docker", "exec", "blog-frontend-blue", "npm", "run", "index"]]
        assert run.commands == []

    def test_copy_into(self, run: Recorder, tmp_path: Path) -> None:
        src = tmp_path / "content" / "a.md"
        ComposeRuntime(tmp_path).copy_into("blog-frontend-blue", src, "/app/content/a.md")
        assert run.commands[0] == ["docker", "cp", str(src), "blog-frontend-blue:/app/content/a.md"]

    def test_prune_images(self, run: Recorder, tmp_path: Path) -> None:
        assert ComposeRuntime(tmp_path).prune_images() == Ok(None)
        assert run.commands[0] == ["docker", "image", "prune", "-f"]
