"""Apply a content diff to a running instance, then reindex it.

The instance keeps serving while files change under it; the reindexing
pipeline rebuilds derived data (OCR text, entity references, embeddings,
the article index) from the new content in place. Nothing is rebuilt or
restarted.
"""

from __future__ import annotations

import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Protocol

from hotfix.core.config import PipelineConfig
from hotfix.core.result import Err, Ok, Result
from hotfix.output.console import ConsoleProtocol, Style
from hotfix.platform.process import run_silent
from hotfix.release.model import ContentDiff
from hotfix.runtime.compose import ContainerRuntime

__all__ = [
    "ContainerTarget",
    "ContentSyncEngine",
    "DirectoryTarget",
    "SyncReport",
    "SyncTarget",
]


class SyncTarget(Protocol):
    """Where content lands and where the reindexing pipeline runs."""

    def describe(self) -> str: ...

    def copy(self, source: Path, rel_path: str) -> Result[None, str]: ...

    def remove(self, rel_path: str) -> Result[None, str]: ...

    def repair_permissions(self) -> list[str]:
        """Make writable areas writable again; returns warnings."""
        ...

    def run_step(self, command: str) -> Result[None, str]: ...


class ContainerTarget:
    """A running container, reached through ``docker cp`` and ``docker exec``.

    Args:
        runtime: Container runtime.
        container: Container name of the live slot.
        root: Application root inside the container; workspace-relative
            content paths are placed under it.
        writable_dirs: Directories the app must be able to write to.
        owner: ``user:group`` the app runs as.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        container: str,
        *,
        root: str = "/app",
        writable_dirs: tuple[str, ...] = (),
        owner: str = "nextjs:nodejs",
    ) -> None:
        self._runtime = runtime
        self.container = container
        self._root = root.rstrip("/")
        self._writable_dirs = writable_dirs
        self._owner = owner

    def describe(self) -> str:
        return f"container {self.container}"

    def container_path(self, rel_path: str) -> str:
        return f"{self._root}/{rel_path}"

    def copy(self, source: Path, rel_path: str) -> Result[None, str]:
        dest = self.container_path(rel_path)
        parent = str(PurePosixPath(dest).parent)
        mkdir = self._runtime.container_exec(self.container, ["mkdir", "-p", parent], user="0")
        if isinstance(mkdir, Err):
            return Err(f"mkdir {parent}: {mkdir.error.detail}")
        result = self._runtime.copy_into(self.container, source, dest)
        if isinstance(result, Err):
            return Err(f"docker cp {rel_path}: {result.error.detail}")
        return Ok(None)

    def remove(self, rel_path: str) -> Result[None, str]:
        result = self._runtime.container_exec(
            self.container, ["rm", "-f", self.container_path(rel_path)], user="0"
        )
        if isinstance(result, Err):
            return Err(result.error.detail)
        return Ok(None)

    def repair_permissions(self) -> list[str]:
        warnings: list[str] = []
        for directory in self._writable_dirs:
            quoted = shlex.quote(directory)
            script = f"mkdir -p {quoted} && chown -R {shlex.quote(self._owner)} {quoted}"
            result = self._runtime.container_exec(self.container, ["sh", "-c", script], user="0")
            if isinstance(result, Err):
                warnings.append(f"could not fix permissions on {directory}: {result.error.detail}")
        return warnings

    def run_step(self, command: str) -> Result[None, str]:
        result = self._runtime.container_exec(self.container, shlex.split(command), stream=True)
        if isinstance(result, Err):
            return Err(result.error.detail)
        return Ok(None)


class DirectoryTarget:
    """A local directory standing in for the instance (staging, tests).

    Pipeline steps run as local commands with the directory as working dir.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def describe(self) -> str:
        return f"directory {self.root}"

    def copy(self, source: Path, rel_path: str) -> Result[None, str]:
        dest = self.root / rel_path
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
        except OSError as e:
            return Err(str(e))
        return Ok(None)

    def remove(self, rel_path: str) -> Result[None, str]:
        try:
            (self.root / rel_path).unlink(missing_ok=True)
        except OSError as e:
            return Err(str(e))
        return Ok(None)

    def repair_permissions(self) -> list[str]:
        return []

    def run_step(self, command: str) -> Result[None, str]:
        result = run_silent(shlex.split(command), cwd=self.root)
        if isinstance(result, Err):
            return Err(str(result.error))
        return Ok(None)


@dataclass
class SyncReport:
    """Outcome of one ``apply``; warnings never make the sync fail."""

    copied: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    kept_local: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed_steps: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


class ContentSyncEngine:
    """Copies content changes into a target and runs its reindexing pipeline.

    Args:
        root: Local workspace root the diff paths are relative to.
        content_dir: Content tree (workspace-relative); deletions outside it
            are never applied.
        pipeline: Reindexing commands.
        console: Progress output.
    """

    def __init__(
        self,
        root: Path,
        content_dir: str,
        pipeline: PipelineConfig,
        console: ConsoleProtocol,
    ) -> None:
        self._root = root
        self._content_dir = content_dir.strip("/")
        self._pipeline = pipeline
        self._console = console

    def apply(
        self,
        diff: ContentDiff,
        target: SyncTarget,
        *,
        run_similarities: bool = False,
    ) -> SyncReport:
        report = SyncReport()
        self._console.header(f"Syncing content to {target.describe()}")
        self._console.print(f"  {diff.summary()}", Style.DIM)

        self._copy(diff, target, report)
        self._remove(diff, target, report)

        for warning in target.repair_permissions():
            self._warn(report, warning)

        self._run_pipeline(target, report, run_similarities=run_similarities)
        return report

    def _copy(self, diff: ContentDiff, target: SyncTarget, report: SyncReport) -> None:
        for rel in diff.paths_to_copy:
            source = self._root / rel
            if not source.is_file():
                report.missing.append(rel)
                self._warn(report, f"{rel} is not present locally; not copied")
                continue
            result = target.copy(source, rel)
            if isinstance(result, Err):
                self._warn(report, f"copy failed: {result.error}")
                continue
            report.copied.append(rel)
        if report.copied:
            self._console.success(f"Copied {len(report.copied)} file(s)")

    def _remove(self, diff: ContentDiff, target: SyncTarget, report: SyncReport) -> None:
        for rel in diff.paths_to_remove:
            if not self._in_content_tree(rel):
                continue
            # Last write wins: a file recreated locally after the diff was
            # taken must survive.
            if (self._root / rel).exists():
                report.kept_local.append(rel)
                self._console.print(f"  keep {rel} (exists locally)", Style.DIM)
                continue
            result = target.remove(rel)
            if isinstance(result, Err):
                self._warn(report, f"failed to delete {rel}: {result.error}")
                continue
            report.removed.append(rel)
            self._console.print(f"  deleted {rel}", Style.DIM)
        if report.removed:
            self._console.success(f"Removed {len(report.removed)} deleted file(s)")

    def _run_pipeline(self, target: SyncTarget, report: SyncReport, *, run_similarities: bool) -> None:
        steps = [
            ("OCR", self._pipeline.ocr),
            ("entity scan", self._pipeline.entity_scan),
            ("embeddings", self._pipeline.embed),
        ]
        if run_similarities:
            steps.append(("similarities", self._pipeline.similarity))
        steps.append(("index", self._pipeline.index))

        for name, command in steps:
            if not command:
                continue
            self._console.info(f"Running {name}...")
            self._console.print(f"  {command}", Style.DIM)
            result = target.run_step(command)
            if isinstance(result, Err):
                report.failed_steps.append(name)
                self._warn(report, f"{name} failed (continuing): {result.error}")

        if not run_similarities:
            self._console.print(
                "  similarities skipped (set HOTFIX_RUN_SIMILARITIES=true to enable)", Style.DIM
            )

    def _in_content_tree(self, rel: str) -> bool:
        return rel == self._content_dir or rel.startswith(f"{self._content_dir}/")

    def _warn(self, report: SyncReport, message: str) -> None:
        report.warnings.append(message)
        self._console.warning(message)
