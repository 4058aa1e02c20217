"""Tests for hotfix.release.health module."""

from __future__ import annotations

import threading

from hotfix.core.result import Err, Ok
from hotfix.output.console import MockConsole
from hotfix.platform.http import MockHttpClient
from hotfix.release.health import (
    ExecProbe,
    HealthGate,
    HealthTimeout,
    HttpProbe,
    node_fetch_command,
)
from hotfix.test.release.fakes import FakeRuntime


class ScriptedProbe:
    def __init__(self, answers: list[bool]) -> None:
        self.answers = list(answers)
        self.calls = 0

    def describe(self) -> str:
        return "scripted"

    def check(self) -> bool:
        self.calls += 1
        return self.answers.pop(0) if self.answers else False


class TestHealthGate:
    def test_ready_on_third_attempt(self) -> None:
        sleeps: list[float] = []
        console = MockConsole()
        gate = HealthGate(console, sleep=sleeps.append)

        result = gate.wait_ready(ScriptedProbe([False, False, True]), max_attempts=240, interval=2.0)

        assert result == Ok(3)
        assert sleeps == [2.0, 2.0]
        assert len(console.find("not ready yet")) == 2

    def test_timeout_has_no_trailing_sleep(self) -> None:
        sleeps: list[float] = []
        probe = ScriptedProbe([])

        result = HealthGate(MockConsole(), sleep=sleeps.append).wait_ready(
            probe, max_attempts=3, interval=1.0
        )

        assert isinstance(result, Err)
        assert result.error.attempts == 3
        assert not result.error.cancelled
        assert probe.calls == 3
        assert sleeps == [1.0, 1.0]

    def test_cancel_before_first_probe(self) -> None:
        cancel = threading.Event()
        cancel.set()
        probe = ScriptedProbe([True])

        result = HealthGate(MockConsole()).wait_ready(
            probe, max_attempts=5, interval=0.01, cancel=cancel
        )

        assert isinstance(result, Err)
        assert result.error.cancelled
        assert probe.calls == 0

    def test_cancel_event_used_for_waiting(self) -> None:
        cancel = threading.Event()
        sleeps: list[float] = []

        result = HealthGate(MockConsole(), sleep=sleeps.append).wait_ready(
            ScriptedProbe([False, True]), max_attempts=5, interval=0.01, cancel=cancel
        )

        assert result == Ok(2)
        assert sleeps == []


class TestProbes:
    def test_http_probe_accepts_2xx_only(self) -> None:
        probe = HttpProbe(MockHttpClient(responses=[301, 204]), "http://frontend-green:3000/api/ready")

        assert probe.check() is False
        assert probe.check() is True
        assert probe.describe() == "GET http://frontend-green:3000/api/ready"

    def test_exec_probe(self) -> None:
        runtime = FakeRuntime(failing=("container_exec:app-frontend-green",))
        probe = ExecProbe(runtime, "app-frontend-green", node_fetch_command(3000, "/api/ready"))

        assert probe.check() is False
        assert runtime.count("container_exec:app-frontend-green:node") == 1

    def test_exec_probe_caps_each_attempt(self) -> None:
        runtime = FakeRuntime(failing=("container_exec:app-frontend-green",))
        probe = ExecProbe(
            runtime, "app-frontend-green", node_fetch_command(3000, "/api/ready"), timeout=7.5
        )

        result = HealthGate(MockConsole(), sleep=lambda _: None).wait_ready(
            probe, max_attempts=2, interval=0
        )

        assert result == Err(HealthTimeout(attempts=2))
        assert runtime.exec_timeouts == [7.5, 7.5]

    def test_node_fetch_command_targets_loopback(self) -> None:
        cmd = node_fetch_command(3000, "/api/ready")
        assert cmd[:2] == ["node", "-e"]
        assert "http://127.0.0.1:3000/api/ready" in cmd[2]
