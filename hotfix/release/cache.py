"""Pattern-scoped cache eviction after a release.

Keys are found with incremental ``SCAN MATCH`` (``KEYS`` would block the
server on a large keyspace) and removed with ``UNLINK``, which reclaims
memory in a background thread. Eviction is best-effort: an unreachable
cache only means stale entries expire on their own TTL.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol

import redis

from hotfix.output.console import ConsoleProtocol

__all__ = ["CacheInvalidator", "InvalidationReport", "RedisLike", "redis_client_factory"]


class RedisLike(Protocol):
    """Subset of ``redis.Redis`` used for eviction."""

    def ping(self) -> object: ...

    def scan_iter(self, match: str | None = None, count: int | None = None) -> Iterator[object]: ...

    def unlink(self, *names: object) -> object: ...


@dataclass
class InvalidationReport:
    reachable: bool = True
    removed: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.removed.values())


def redis_client_factory(url: str, *, socket_timeout: float = 5.0) -> Callable[[], RedisLike]:
    """Deferred ``redis.Redis.from_url``; nothing connects until called."""

    def connect() -> RedisLike:
        return redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    return connect


class CacheInvalidator:
    """Evicts keys matching glob patterns.

    Args:
        connect: Returns a client; called once per ``invalidate``.
        console: Progress output.
        batch_size: SCAN count hint and UNLINK batch size.
    """

    def __init__(
        self,
        connect: Callable[[], RedisLike],
        console: ConsoleProtocol,
        *,
        batch_size: int = 500,
    ) -> None:
        self._connect = connect
        self._console = console
        self._batch_size = max(1, batch_size)

    def invalidate(self, patterns: Sequence[str]) -> InvalidationReport:
        report = InvalidationReport()
        if not patterns:
            return report

        self._console.info("Invalidating cache...")
        try:
            client = self._connect()
            client.ping()
        except (redis.exceptions.RedisError, OSError, ValueError) as e:
            report.reachable = False
            self._console.warning(f"cache not reachable, skipping invalidation: {e}")
            return report

        for pattern in patterns:
            try:
                count = self._evict(client, pattern)
            except (redis.exceptions.RedisError, OSError) as e:
                report.failed.append(pattern)
                self._console.warning(f"cache invalidation failed for {pattern}: {e}")
                continue
            report.removed[pattern] = count
            self._console.print(f"  {pattern}: {count} key(s)")

        if not report.failed:
            self._console.success(f"Cache invalidated ({report.total} key(s))")
        return report

    def _evict(self, client: RedisLike, pattern: str) -> int:
        removed = 0
        for batch in _batched(client.scan_iter(match=pattern, count=self._batch_size), self._batch_size):
            client.unlink(*batch)
            removed += len(batch)
        return removed


def _batched(items: Iterable[object], size: int) -> Iterator[list[object]]:
    batch: list[object] = []
    for item in items:
        batch.append(item)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch
