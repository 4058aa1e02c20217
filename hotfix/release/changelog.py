from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from hotfix.core.result import Err, Ok, Result
from hotfix.git.repository import Repository
from hotfix.platform.files import atomic_write_text
from hotfix.release.model import Slot

__all__ = ["ChangelogEntry", "insert_entry", "render_entry", "update_changelog"]

MAX_LISTED_FILES = 20
SEPARATOR = "---"


@dataclass(frozen=True, slots=True)
class ChangelogEntry:
    kind: str  # "Articles Update" | "Frontend Update"
    deploy_type: str  # "hotfix (articles)" | "hotfix (frontend)"
    timestamp: datetime
    branch: str | None
    commit: str | None
    commits: tuple[str, ...] = ()
    changed_files: tuple[str, ...] = ()
    switch: tuple[Slot, Slot] | None = None


def render_entry(entry: ChangelogEntry) -> str:
    stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S")
    lines: list[str] = []
    lines.append("")
    lines.append(f"## [Hotfix - {entry.kind}] - {stamp}")
    lines.append("")

    if entry.commits:
        lines.append("### Changes")
        lines.append("```")
        lines.extend(entry.commits)
        lines.append("```")
        lines.append("")

    if entry.changed_files:
        lines.append("### Changed Files")
        lines.append("```")
        lines.extend(entry.changed_files[:MAX_LISTED_FILES])
        extra = len(entry.changed_files) - MAX_LISTED_FILES
        if extra > 0:
            lines.append(f"... and {extra} more files")
        lines.append("```")
        lines.append("")

    lines.append("### Deployment Info")
    lines.append(f"- Type: {entry.deploy_type}")
    lines.append(f"- Time: {stamp}")
    lines.append(f"- Branch: {entry.branch or 'unknown'}")
    lines.append(f"- Commit: {entry.commit or 'unknown'}")
    if entry.switch is not None:
        old, new = entry.switch
        lines.append(f"- Blue/Green: {old} -> {new}")
    lines.append("")
    lines.append(SEPARATOR)
    return "\n".join(lines)


def insert_entry(text: str, rendered: str) -> str | None:
    """Insert after the first ``---`` line; None when there is none."""
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if line == SEPARATOR:
            merged = [*lines[: i + 1], rendered, *lines[i + 1 :]]
            return "\n".join(merged) + "\n"
    return None


def update_changelog(
    path: Path,
    repo: Repository,
    *,
    kind: str,
    deploy_type: str,
    base: str | None,
    paths: tuple[str, ...] = (),
    switch: tuple[Slot, Slot] | None = None,
    now: datetime | None = None,
) -> Result[bool, str]:
    """Prepend a release entry to ``path``.

    Returns Ok(False) when there is nothing to update (no changelog or not a
    git checkout), Err(reason) when the file could not be updated.
    """
    if not path.is_file() or not repo.exists():
        return Ok(False)

    commits: tuple[str, ...] = ()
    changed: tuple[str, ...] = ()
    if base is not None:
        commits = tuple(repo.log_oneline(base))
        names = repo.diff_names(base, paths=paths)
        if isinstance(names, Ok):
            changed = tuple(names.value)

    entry = ChangelogEntry(
        kind=kind,
        deploy_type=deploy_type,
        timestamp=now or datetime.now(),
        branch=repo.current_branch(),
        commit=repo.short_head(),
        commits=commits,
        changed_files=changed,
        switch=switch,
    )

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(f"cannot read {path.name}: {e}")

    updated = insert_entry(text, render_entry(entry))
    if updated is None:
        return Err(f"{path.name} has no '{SEPARATOR}' separator line")

    try:
        atomic_write_text(path, updated)
    except OSError as e:
        return Err(f"cannot write {path.name}: {e}")
    return Ok(True)
