"""Pick the workflow for a set of changed paths.

Server-side changes (build manifests, entry points, server sources, static
assets) require a full slot release even when content changed too. Content
changes alone can be hot-synced. Anything else is ambiguous and ``auto``
refuses to guess: a wrong guess either skips a needed rebuild or restarts
serving infrastructure for nothing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from hotfix.core.result import Err, Ok, Result
from hotfix.git.repository import Repository
from hotfix.output.console import ConsoleProtocol
from hotfix.release.errors import ReleaseError
from hotfix.release.model import Classification

__all__ = [
    "ChangeClassifier",
    "DiffBase",
    "collect_changed_paths",
    "resolve_diff_base",
]


class ChangeClassifier:
    def __init__(self, server_patterns: Iterable[str], content_patterns: Iterable[str]) -> None:
        self._server = [re.compile(p) for p in server_patterns]
        self._content = [re.compile(p) for p in content_patterns]

    def classify(self, changed_paths: Iterable[str]) -> Classification:
        paths = [p.strip() for p in changed_paths if p.strip()]
        if any(self.is_server_path(p) for p in paths):
            return Classification.FULL_RELEASE
        if any(self.is_content_path(p) for p in paths):
            return Classification.CONTENT_ONLY
        return Classification.AMBIGUOUS

    def is_server_path(self, path: str) -> bool:
        return any(rx.search(path) for rx in self._server)

    def is_content_path(self, path: str) -> bool:
        return any(rx.search(path) for rx in self._content)


@dataclass(frozen=True, slots=True)
class DiffBase:
    """Revision the release diffs against, and whether it was a fallback."""

    rev: str
    fallback: bool = False


def resolve_diff_base(repo: Repository) -> DiffBase | None:
    """Revision just before the last pull/merge.

    ``ORIG_HEAD`` is set by pull/merge/rebase and is the precise boundary;
    ``HEAD@{1}`` (the reflog) is a less precise fallback.
    """
    if repo.rev_exists("ORIG_HEAD"):
        return DiffBase(rev="ORIG_HEAD")
    if repo.rev_exists("HEAD@{1}"):
        return DiffBase(rev="HEAD@{1}", fallback=True)
    return None


def collect_changed_paths(
    repo: Repository,
    base: str,
    console: ConsoleProtocol,
) -> Result[list[str], ReleaseError]:
    """Committed changes ``base..HEAD`` plus uncommitted working-tree changes."""
    committed = repo.diff_names(base)
    if isinstance(committed, Err):
        return Err(
            ReleaseError(
                kind="diff_failed",
                message=f"git diff {base} HEAD failed: {committed.error.message}",
            )
        )

    changed = set(committed.value)
    if not repo.is_clean():
        console.warning("Working tree is not clean; including unstaged/staged changes in detection.")
        worktree = repo.worktree_changes()
        if isinstance(worktree, Err):
            return Err(
                ReleaseError(
                    kind="diff_failed",
                    message=f"cannot list working tree changes: {worktree.error.message}",
                )
            )
        changed.update(worktree.value)

    return Ok(sorted(changed))
