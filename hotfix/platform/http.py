"""Minimal HTTP client for readiness probes.

- HttpClient: Protocol (injectable for tests)
- RealHttpClient: urllib implementation
- MockHttpClient: scripted responses for tests
"""

from __future__ import annotations

import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from hotfix.core.result import Err, Ok, Result

__all__ = ["HttpClient", "HttpError", "MockHttpClient", "RealHttpClient"]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP failure; status is 0 for network errors."""

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    def get_status(self, url: str) -> Result[int, HttpError]:
        """GET url and return the status code of a 2xx/3xx response."""
        ...


class RealHttpClient:
    """Plain unauthenticated GET using urllib."""

    def __init__(self, timeout: float = 5.0, user_agent: str = "hotfix-probe") -> None:
        self.timeout = timeout
        self.user_agent = user_agent

    def get_status(self, url: str) -> Result[int, HttpError]:
        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                return Ok(int(response.status))
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))


def _empty_statuses() -> list[int | HttpError]:
    return []


@dataclass
class MockHttpClient:
    """Replays ``responses`` in order; the last one repeats once exhausted."""

    responses: list[int | HttpError] = field(default_factory=_empty_statuses)
    calls: list[str] = field(default_factory=list)

    def get_status(self, url: str) -> Result[int, HttpError]:
        self.calls.append(url)
        if not self.responses:
            return Err(HttpError(url=url, status=0, message="Connection refused (mock)"))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, HttpError):
            return Err(response)
        if response >= 400:
            return Err(HttpError(url=url, status=response, message="error (mock)"))
        return Ok(response)
