"""Tests for hotfix.release.model module."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from hotfix.core.config import SlotsConfig
from hotfix.release.model import ContentDiff, ContentItem, RollbackTask, Slot, SlotNames


class TestSlot:
    @pytest.mark.parametrize("text", ["green", " GREEN\n", "gr een"])
    def test_parse_tolerates_whitespace_and_case(self, text: str) -> None:
        assert Slot.parse(text) is Slot.GREEN

    @pytest.mark.parametrize("text", [None, "", "purple"])
    def test_parse_rejects(self, text: str | None) -> None:
        assert Slot.parse(text) is None

    def test_other(self) -> None:
        assert Slot.BLUE.other is Slot.GREEN
        assert Slot.GREEN.other is Slot.BLUE

    def test_names(self) -> None:
        names = SlotNames.for_slot(Slot.GREEN, SlotsConfig())
        assert names.service == "frontend-green"
        assert names.container == "app-frontend-green"


class TestContentDiff:
    def test_overlap_rejected(self) -> None:
        with pytest.raises(ValueError, match="overlap"):
            ContentDiff(
                added=frozenset({ContentItem("content/a.md")}),
                deleted=frozenset({"content/a.md"}),
            )

    def test_copy_and_remove_include_renames(self) -> None:
        diff = ContentDiff(
            added=frozenset({ContentItem("content/a.md")}),
            modified=frozenset({ContentItem("content/b.md")}),
            deleted=frozenset({"content/c.md"}),
            renamed=frozenset({("content/d.md", "content/e.md")}),
        )

        assert diff.paths_to_copy == ["content/a.md", "content/b.md", "content/e.md"]
        assert diff.paths_to_remove == ["content/c.md", "content/d.md"]
        assert diff.summary() == "1 added, 1 modified, 1 deleted, 1 renamed"
        assert not diff.is_empty

    def test_empty(self) -> None:
        assert ContentDiff().is_empty

    def test_full_copy(self) -> None:
        diff = ContentDiff.full_copy(["content/b.md", "content/a.md"])
        assert diff.paths_to_copy == ["content/a.md", "content/b.md"]
        assert diff.paths_to_remove == []


class TestRollbackTask:
    def _task(self) -> RollbackTask:
        return RollbackTask(
            id="20240501-120000-blue",
            scheduled_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
            window_seconds=300,
            expected_active=Slot.GREEN,
            slot_to_stop=Slot.BLUE,
        )

    def test_json_preserves_fields(self) -> None:
        task = self._task().cancel()
        assert RollbackTask.from_json(task.to_json()) == task

    def test_fires_at(self) -> None:
        task = self._task()
        assert task.fires_at == task.scheduled_at + timedelta(minutes=5)

    @pytest.mark.parametrize(
        "text",
        [
            "[]",
            "not json",
            '{"id": "x", "scheduled_at": "2024-05-01T12:00:00+00:00"}',
            '{"id": "x", "scheduled_at": "2024-05-01T12:00:00+00:00", "window_seconds": 5,'
            ' "expected_active": "purple", "slot_to_stop": "blue"}',
        ],
    )
    def test_malformed(self, text: str) -> None:
        with pytest.raises(ValueError):
            RollbackTask.from_json(text)
