"""Readiness gate for a candidate slot.

Polling is fixed-interval with a bounded number of attempts: the candidate
is expected to finish booting within a known time, so there is nothing to
back off from. A timeout aborts the release before traffic is touched.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from hotfix.core.result import Err, Ok, Result
from hotfix.output.console import ConsoleProtocol, Style
from hotfix.platform.http import HttpClient
from hotfix.runtime.compose import ContainerRuntime

PROBE_TIMEOUT_FLOOR_SECONDS = 5.0

__all__ = [
    "PROBE_TIMEOUT_FLOOR_SECONDS",
    "ExecProbe",
    "HealthGate",
    "HealthTimeout",
    "HttpProbe",
    "ReadinessProbe",
    "node_fetch_command",
]


class ReadinessProbe(Protocol):
    def describe(self) -> str: ...

    def check(self) -> bool:
        """True when the instance answers its readiness endpoint successfully."""
        ...


@dataclass(frozen=True, slots=True)
class HealthTimeout:
    attempts: int
    cancelled: bool = False


def node_fetch_command(port: int, path: str) -> list[str]:
    """Readiness check run inside the container with the server's own runtime.

    Avoids depending on curl or wget being present in the image.
    """
    script = (
        f"fetch('http://127.0.0.1:{port}{path}')"
        ".then(r=>process.exit(r.ok?0:1)).catch(()=>process.exit(1))"
    )
    return ["node", "-e", script]


class ExecProbe:
    """Runs a readiness command inside the candidate container.

    Each attempt is capped at ``timeout`` seconds; a hung request counts as
    a failed attempt.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        container: str,
        command: list[str],
        *,
        timeout: float = PROBE_TIMEOUT_FLOOR_SECONDS,
    ) -> None:
        self._runtime = runtime
        self._container = container
        self._command = command
        self._timeout = timeout

    def describe(self) -> str:
        return f"exec in {self._container}"

    def check(self) -> bool:
        result = self._runtime.container_exec(self._container, self._command, timeout=self._timeout)
        return result.is_ok()


class HttpProbe:
    """Plain unauthenticated GET; any 2xx response means ready."""

    def __init__(self, http: HttpClient, url: str) -> None:
        self._http = http
        self.url = url

    def describe(self) -> str:
        return f"GET {self.url}"

    def check(self) -> bool:
        result = self._http.get_status(self.url)
        return isinstance(result, Ok) and 200 <= result.value < 300


class HealthGate:
    """Bounded, fixed-interval readiness polling.

    Args:
        console: Progress output.
        sleep: Used between attempts when no cancel event is given.
    """

    def __init__(
        self,
        console: ConsoleProtocol,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._console = console
        self._sleep = sleep

    def wait_ready(
        self,
        probe: ReadinessProbe,
        *,
        max_attempts: int,
        interval: float,
        cancel: threading.Event | None = None,
    ) -> Result[int, HealthTimeout]:
        """Poll until ready.

        Returns Ok(attempts used) on the first successful probe, or
        Err(HealthTimeout) once ``max_attempts`` probes failed or ``cancel``
        was set. There is no wait after the final attempt.
        """
        for attempt in range(1, max_attempts + 1):
            if cancel is not None and cancel.is_set():
                return Err(HealthTimeout(attempts=attempt - 1, cancelled=True))

            if probe.check():
                return Ok(attempt)

            self._console.print(f"  not ready yet ({attempt}/{max_attempts})", Style.DIM)
            if attempt == max_attempts:
                break

            if cancel is None:
                self._sleep(interval)
            elif cancel.wait(interval):
                return Err(HealthTimeout(attempts=attempt, cancelled=True))

        return Err(HealthTimeout(attempts=max_attempts))
