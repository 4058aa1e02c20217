"""Tests for hotfix.release.cache module."""

from __future__ import annotations

import redis

from hotfix.output.console import MockConsole
from hotfix.release.cache import CacheInvalidator, RedisLike, redis_client_factory
from hotfix.test.release.fakes import FakeRedis


def _keys() -> set[str]:
    return {
        "articles:list:1",
        "articles:list:2",
        "article:hello-world",
        "search:q=ai",
        "session:abc",
    }


class TestCacheInvalidator:
    def test_removes_matching_keys_only(self) -> None:
        client = FakeRedis(keys=_keys())
        console = MockConsole()

        report = CacheInvalidator(lambda: client, console).invalidate(["articles:*", "article:*", "search:*"])

        assert report.reachable
        assert report.removed == {"articles:*": 2, "article:*": 1, "search:*": 1}
        assert report.total == 4
        assert client.keys == {"session:abc"}
        assert console.find("Cache invalidated (4 key(s))")

    def test_unlinks_in_batches(self) -> None:
        client = FakeRedis(keys={f"articles:{i}" for i in range(5)})

        CacheInvalidator(lambda: client, MockConsole(), batch_size=2).invalidate(["articles:*"])

        assert [len(b) for b in client.unlink_calls] == [2, 2, 1]
        assert client.scan_counts == [2]

    def test_unreachable_is_noop(self) -> None:
        def connect() -> RedisLike:
            raise redis.exceptions.ConnectionError("Connection refused")

        console = MockConsole()

        report = CacheInvalidator(connect, console).invalidate(["articles:*"])

        assert not report.reachable
        assert report.total == 0
        assert console.has_warning()
        assert not console.has_error()

    def test_malformed_url_is_noop(self) -> None:
        console = MockConsole()

        report = CacheInvalidator(redis_client_factory("localhost:6379"), console).invalidate(["articles:*"])

        assert not report.reachable
        assert console.find("cache not reachable")
        assert not console.has_error()

    def test_pattern_failure_continues(self) -> None:
        client = FakeRedis(keys=_keys(), fail_on="article:*")
        console = MockConsole()

        report = CacheInvalidator(lambda: client, console).invalidate(["article:*", "search:*"])

        assert report.failed == ["article:*"]
        assert report.removed == {"search:*": 1}
        assert console.has_warning()
        assert not console.find("Cache invalidated")

    def test_no_patterns(self) -> None:
        calls: list[int] = []

        def connect() -> RedisLike:
            calls.append(1)
            return FakeRedis()

        report = CacheInvalidator(connect, MockConsole()).invalidate([])

        assert report.total == 0
        assert calls == []


def test_factory_is_lazy() -> None:
    connect = redis_client_factory("redis://127.0.0.1:1/0", socket_timeout=0.1)
    assert callable(connect)
