"""Deferred decommissioning of the previous slot.

After a switch the old slot can be kept alive for a rollback window. The
stop is executed by a detached worker process (``hotfix rollback fire``) so
the release command can return immediately and the timer survives the
operator's shell. The worker shares a JSON task record with the CLI:

    deploy-state/rollback/<task-id>.json   task record (deleted after firing)
    deploy-state/rollback/<task-id>.log    worker output

At fire time the worker re-reads the record (a cancelled task does nothing)
and the active slot. If the active slot is no longer the one the task expects,
a later release or a manual rollback happened and the old slot may be live
again, so the task skips. This is an optimistic read-then-act check, not a
lock.
"""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Protocol

from hotfix.core.config import SlotsConfig
from hotfix.core.result import Err, Ok, Result
from hotfix.output.console import ConsoleProtocol, Style
from hotfix.platform.files import atomic_write_text
from hotfix.platform.process import ProcessError, spawn_detached
from hotfix.release.model import RollbackTask, Slot, SlotNames
from hotfix.release.state import ColorStateStore
from hotfix.runtime.compose import ContainerRuntime

__all__ = [
    "DetachedLauncher",
    "FireOutcome",
    "RollbackScheduler",
    "RollbackTaskStore",
    "TaskLauncher",
    "fire",
]


class FireOutcome(Enum):
    STOPPED = "stopped"
    STOP_FAILED = "stop-failed"
    SKIPPED_CANCELLED = "skipped-cancelled"
    SKIPPED_ACTIVE_CHANGED = "skipped-active-changed"


class RollbackTaskStore:
    """Task records and logs under one directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def record_path(self, task_id: str) -> Path:
        return self.directory / f"{task_id}.json"

    def log_path(self, task_id: str) -> Path:
        return self.directory / f"{task_id}.log"

    def save(self, task: RollbackTask) -> Path:
        path = self.record_path(task.id)
        atomic_write_text(path, task.to_json() + "\n")
        return path

    def load(self, path: Path) -> RollbackTask | None:
        """Parse a record; None if it is gone or unreadable."""
        try:
            return RollbackTask.from_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None

    def pending(self) -> list[RollbackTask]:
        """Records that have not fired yet, oldest first."""
        if not self.directory.is_dir():
            return []
        tasks = [self.load(p) for p in sorted(self.directory.glob("*.json"))]
        return sorted((t for t in tasks if t is not None), key=lambda t: t.scheduled_at)

    def cancel(self, task_id: str) -> RollbackTask | None:
        """Flag a task as cancelled; None if no such pending task."""
        if not task_id or "/" in task_id or task_id.startswith("."):
            return None
        task = self.load(self.record_path(task_id))
        if task is None:
            return None
        cancelled = task.cancel()
        self.save(cancelled)
        return cancelled

    def cancel_pending(self) -> list[RollbackTask]:
        """Flag every pending task as cancelled; returns the ones flagged."""
        flagged: list[RollbackTask] = []
        for task in self.pending():
            if task.cancelled:
                continue
            cancelled = task.cancel()
            self.save(cancelled)
            flagged.append(cancelled)
        return flagged

    def finish(self, task: RollbackTask) -> None:
        self.record_path(task.id).unlink(missing_ok=True)


class TaskLauncher(Protocol):
    def launch(self, record_path: Path, log_path: Path) -> Result[int, ProcessError]:
        """Start the worker for a task record; returns its pid."""
        ...


class DetachedLauncher:
    """Starts ``python -m hotfix rollback fire <record>`` in its own session."""

    def __init__(self, workspace_root: Path) -> None:
        self._root = workspace_root

    def launch(self, record_path: Path, log_path: Path) -> Result[int, ProcessError]:
        cmd = [
            sys.executable,
            "-m",
            "hotfix",
            "--workspace",
            str(self._root),
            "rollback",
            "fire",
            str(record_path),
        ]
        return spawn_detached(cmd, cwd=self._root, log_path=log_path)


class RollbackScheduler:
    """Stops the previous slot now, or after a window via a detached worker."""

    def __init__(
        self,
        *,
        runtime: ContainerRuntime,
        tasks: RollbackTaskStore,
        launcher: TaskLauncher,
        slots: SlotsConfig,
        console: ConsoleProtocol,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._runtime = runtime
        self._tasks = tasks
        self._launcher = launcher
        self._slots = slots
        self._console = console
        self._clock = clock

    def schedule(
        self,
        expected_active: Slot,
        slot_to_stop: Slot,
        window_seconds: int,
    ) -> RollbackTask | None:
        """Stop ``slot_to_stop`` now (window 0) or schedule it.

        Older pending tasks are cancelled first. Returns the persisted task
        for a deferred stop, None otherwise. Stop and launch failures are
        warnings: traffic already moved, so the release itself has
        succeeded either way.
        """
        for superseded in self._tasks.cancel_pending():
            self._console.print(f"  superseded rollback task {superseded.id}", Style.DIM)

        service = SlotNames.for_slot(slot_to_stop, self._slots).service
        if window_seconds <= 0:
            self._console.info(f"Stopping old slot {service}...")
            result = self._runtime.stop(service)
            if isinstance(result, Err):
                self._console.warning(f"failed to stop {service}: {result.error.detail}")
                self._console.hint(f"docker compose stop {service}")
            return None

        now = self._clock()
        task = RollbackTask(
            id=f"{slot_to_stop.value}-to-{expected_active.value}-{now.strftime('%Y%m%d%H%M%S')}",
            scheduled_at=now,
            window_seconds=window_seconds,
            expected_active=expected_active,
            slot_to_stop=slot_to_stop,
        )
        record = self._tasks.save(task)
        log_path = self._tasks.log_path(task.id)

        launched = self._launcher.launch(record, log_path)
        if isinstance(launched, Err):
            self._tasks.finish(task)
            self._console.warning(
                f"could not start the rollback timer ({launched.error.detail}); "
                f"{service} keeps running"
            )
            self._console.hint(f"docker compose stop {service}")
            return None

        self._console.warning(f"Keeping old slot {service} running for {window_seconds}s")
        self._console.print(f"  task: {task.id} (pid {launched.value})")
        self._console.print(f"  log: {log_path}")
        self._console.print(f"  cancel: hotfix rollback cancel {task.id}")
        return task


def fire(
    record_path: Path,
    *,
    tasks: RollbackTaskStore,
    store: ColorStateStore,
    runtime: ContainerRuntime,
    slots: SlotsConfig,
    console: ConsoleProtocol,
    clock: Callable[[], datetime] = datetime.now,
    sleep: Callable[[float], None] = time.sleep,
) -> Result[FireOutcome, str]:
    """Worker body: wait out the window, re-validate, then stop or skip."""
    task = tasks.load(record_path)
    if task is None:
        return Err(f"rollback task record not readable: {record_path}")

    service = SlotNames.for_slot(task.slot_to_stop, slots).service
    console.info(
        f"scheduled: stop {service} after {task.window_seconds}s "
        f"(expected active={task.expected_active})"
    )

    remaining = (task.fires_at - clock()).total_seconds()
    if remaining > 0:
        sleep(remaining)

    current = tasks.load(record_path)
    if current is None or current.cancelled:
        console.info(f"skip: task {task.id} was cancelled")
        tasks.finish(task)
        return Ok(FireOutcome.SKIPPED_CANCELLED)

    active = store.get_active()
    if active != task.expected_active:
        console.info(f"skip: active={active}")
        tasks.finish(task)
        return Ok(FireOutcome.SKIPPED_ACTIVE_CHANGED)

    console.info(f"stopping {service}...")
    result = runtime.stop(service)
    tasks.finish(task)
    if isinstance(result, Err):
        console.warning(f"stop failed: {result.error.detail}")
        return Ok(FireOutcome.STOP_FAILED)
    console.success("done")
    return Ok(FireOutcome.STOPPED)
