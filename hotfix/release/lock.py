"""Single-operator release lock.

Two release commands running at once would race on the state file and the
router config. The lock file is created with ``O_EXCL`` and holds the
owner's pid and start time; it is removed on release. A lock left behind by
a dead process is reported with a hint rather than broken automatically.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from hotfix.core.result import Err, Ok, Result
from hotfix.release.errors import ReleaseError

__all__ = ["LOCK_FILE_NAME", "ReleaseLock", "release_lock"]

LOCK_FILE_NAME = "release.lock"


class ReleaseLock:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._held = False

    def acquire(self, command: str) -> Result[None, ReleaseError]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            return Err(
                ReleaseError(
                    kind="lock_held",
                    message=f"another release is in progress ({self.describe_holder()})",
                    hint=f"If no hotfix process is running, remove {self.path}",
                )
            )
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="precondition_failed",
                    message=f"cannot create release lock {self.path}: {e}",
                )
            )

        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"{os.getpid()} {datetime.now().isoformat(timespec='seconds')} {command}\n")
        self._held = True
        return Ok(None)

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    def describe_holder(self) -> str:
        try:
            content = self.path.read_text(encoding="utf-8").strip()
        except OSError:
            return "holder unknown"
        parts = content.split(maxsplit=2)
        if len(parts) < 2:
            return "holder unknown"
        desc = f"pid {parts[0]} since {parts[1]}"
        if len(parts) == 3:
            desc += f", {parts[2]}"
        return desc


@contextmanager
def release_lock(state_dir: Path, command: str) -> Iterator[Result[None, ReleaseError]]:
    """Hold the lock for the ``with`` body; yields the acquisition result.

    Usage:
        with release_lock(state_dir, "full-release") as acquired:
            if isinstance(acquired, Err):
                return acquired
            ...
    """
    lock = ReleaseLock(state_dir / LOCK_FILE_NAME)
    acquired = lock.acquire(command)
    try:
        yield acquired
    finally:
        lock.release()
