"""Domain model for blue/green releases and content syncs."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Self

from hotfix.core.config import SlotsConfig
from hotfix.core.structured import as_str_dict, get_bool, get_int, get_str

__all__ = [
    "Classification",
    "ContentDiff",
    "ContentItem",
    "DeploymentState",
    "RollbackTask",
    "Slot",
    "SlotNames",
]


class Slot(Enum):
    """One of the two interchangeable deployment targets."""

    BLUE = "blue"
    GREEN = "green"

    def __str__(self) -> str:
        return self.value

    @property
    def other(self) -> Slot:
        return Slot.GREEN if self is Slot.BLUE else Slot.BLUE

    @classmethod
    def parse(cls, text: str | None) -> Slot | None:
        """Parse ``blue``/``green`` (whitespace and case tolerant); None otherwise."""
        if text is None:
            return None
        token = "".join(text.split()).lower()
        for slot in cls:
            if slot.value == token:
                return slot
        return None


@dataclass(frozen=True, slots=True)
class SlotNames:
    """Compose service and container names for a slot."""

    slot: Slot
    service: str
    container: str

    @classmethod
    def for_slot(cls, slot: Slot, config: SlotsConfig) -> SlotNames:
        return cls(
            slot=slot,
            service=f"{config.service_prefix}-{slot.value}",
            container=f"{config.container_prefix}-{slot.value}",
        )


@dataclass(frozen=True, slots=True)
class DeploymentState:
    """Which slot serves traffic, and since when the record was written."""

    active: Slot
    updated_at: datetime


class Classification(Enum):
    """Workflow selected for a set of changed paths."""

    CONTENT_ONLY = "content-only"
    FULL_RELEASE = "full-release"
    AMBIGUOUS = "ambiguous"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True, order=True)
class ContentItem:
    """A content file, identified by its workspace-relative path.

    ``blob`` is the git blob id at the head revision, or None for items taken
    from a working tree.
    """

    path: str
    blob: str | None = None


def _empty_items() -> frozenset[ContentItem]:
    return frozenset()


def _empty_paths() -> frozenset[str]:
    return frozenset()


def _empty_renames() -> frozenset[tuple[str, str]]:
    return frozenset()


@dataclass(frozen=True, slots=True)
class ContentDiff:
    """Changes to the content tree between two revisions.

    ``added``, ``modified`` and ``deleted`` never share a path; construction
    raises ValueError otherwise.
    """

    added: frozenset[ContentItem] = field(default_factory=_empty_items)
    modified: frozenset[ContentItem] = field(default_factory=_empty_items)
    deleted: frozenset[str] = field(default_factory=_empty_paths)
    renamed: frozenset[tuple[str, str]] = field(default_factory=_empty_renames)

    def __post_init__(self) -> None:
        added = {i.path for i in self.added}
        modified = {i.path for i in self.modified}
        overlap = (added & modified) | (added & self.deleted) | (modified & self.deleted)
        if overlap:
            raise ValueError(f"content diff sets overlap: {sorted(overlap)}")

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted or self.renamed)

    @property
    def paths_to_copy(self) -> list[str]:
        """Paths whose current bytes must reach the target, sorted."""
        paths = {i.path for i in self.added} | {i.path for i in self.modified}
        paths.update(new for _old, new in self.renamed)
        return sorted(paths)

    @property
    def paths_to_remove(self) -> list[str]:
        """Paths that no longer exist at head, sorted."""
        paths = set(self.deleted)
        paths.update(old for old, _new in self.renamed)
        return sorted(paths)

    def summary(self) -> str:
        return (
            f"{len(self.added)} added, {len(self.modified)} modified, "
            f"{len(self.deleted)} deleted, {len(self.renamed)} renamed"
        )

    @classmethod
    def full_copy(cls, paths: Iterable[str]) -> ContentDiff:
        """Diff that re-sends every given path and deletes nothing."""
        return cls(added=frozenset(ContentItem(path=p) for p in paths))


@dataclass(frozen=True, slots=True)
class RollbackTask:
    """Deferred stop of the previous slot after a switch.

    Persisted as JSON so the detached worker and ``hotfix rollback cancel``
    share one record.
    """

    id: str
    scheduled_at: datetime
    window_seconds: int
    expected_active: Slot
    slot_to_stop: Slot
    cancelled: bool = False

    @property
    def fires_at(self) -> datetime:
        return self.scheduled_at + timedelta(seconds=self.window_seconds)

    def cancel(self) -> RollbackTask:
        return replace(self, cancelled=True)

    def to_json(self) -> str:
        return json.dumps(
            {
                "id": self.id,
                "scheduled_at": self.scheduled_at.isoformat(),
                "window_seconds": self.window_seconds,
                "expected_active": self.expected_active.value,
                "slot_to_stop": self.slot_to_stop.value,
                "cancelled": self.cancelled,
            },
            indent=2,
        )

    @classmethod
    def from_json(cls, text: str) -> Self:
        """Parse a task record.

        Raises:
            ValueError: If the record is malformed.
        """
        data = as_str_dict(json.loads(text))
        if data is None:
            raise ValueError("rollback task must be a JSON object")
        task_id = get_str(data, "id")
        scheduled = get_str(data, "scheduled_at")
        window = get_int(data, "window_seconds")
        expected = Slot.parse(get_str(data, "expected_active"))
        to_stop = Slot.parse(get_str(data, "slot_to_stop"))
        if task_id is None or scheduled is None or window is None:
            raise ValueError("rollback task is missing id, scheduled_at or window_seconds")
        if expected is None or to_stop is None:
            raise ValueError("rollback task has an invalid slot")
        return cls(
            id=task_id,
            scheduled_at=datetime.fromisoformat(scheduled),
            window_seconds=window,
            expected_active=expected,
            slot_to_stop=to_stop,
            cancelled=bool(get_bool(data, "cancelled")),
        )
