"""Content changes between two revisions.

When the content tree is a nested repository (a git submodule), the outer
repository only records an opaque commit pointer for it: its own diff shows
"the pointer moved" and nothing about files deleted or renamed inside. In
that case the diff is computed inside the nested repository, between the
pointers recorded at ``base`` and ``head``.
"""

from __future__ import annotations

from pathlib import Path

from hotfix.core.result import Err, Ok, Result
from hotfix.git.repository import GitError, Repository
from hotfix.platform.files import iter_files
from hotfix.release.model import ContentDiff, ContentItem

__all__ = ["ContentDiffEngine", "parse_raw_diff"]

_GITLINK_MODE = "160000"


class ContentDiffEngine:
    """Diffs the content tree ``content_dir`` of ``repo``.

    Args:
        repo: The outer (deployment) repository.
        content_dir: Content tree path relative to the repository root.
        detect_renames: Use git's similarity detection. Without it a rename
            is reported as a deletion plus an addition.
    """

    def __init__(self, repo: Repository, content_dir: str, *, detect_renames: bool = True) -> None:
        self._repo = repo
        self._content_dir = content_dir.strip("/")
        self._detect_renames = detect_renames

    @property
    def is_nested_repository(self) -> bool:
        return self._content_dir in self._repo.submodule_paths()

    def diff(self, base: str, head: str = "HEAD") -> Result[ContentDiff, GitError]:
        if self.is_nested_repository:
            old = self._repo.tree_entry_sha(base, self._content_dir)
            new = self._repo.tree_entry_sha(head, self._content_dir)
            if old is not None and new is not None:
                if old == new:
                    return Ok(ContentDiff())
                nested = self._repo.nested(self._content_dir)
                raw = nested.raw_diff(old, new, detect_renames=self._detect_renames)
                if isinstance(raw, Err):
                    return raw
                return Ok(parse_raw_diff(raw.value, prefix=f"{self._content_dir}/"))

        raw = self._repo.raw_diff(
            base,
            head,
            (f"{self._content_dir}/",),
            detect_renames=self._detect_renames,
        )
        if isinstance(raw, Err):
            return raw
        return Ok(parse_raw_diff(raw.value))

    def from_tree(self, root: Path) -> ContentDiff:
        """Every file currently under the content tree, as additions.

        Used when no revision boundary is known: everything is re-sent and
        nothing is deleted.
        """
        content_root = root / self._content_dir
        if not content_root.is_dir():
            return ContentDiff()
        return ContentDiff.full_copy(
            p.relative_to(root).as_posix() for p in iter_files(content_root)
        )


def parse_raw_diff(output: str, *, prefix: str = "") -> ContentDiff:
    """Parse ``git diff --raw -z --no-abbrev`` output.

    Records look like ``:100644 100644 <old> <new> M\\0path\\0``; renames and
    copies carry two paths (``R087\\0old\\0new\\0``). Gitlink entries (nested
    repository pointers) are ignored.
    """
    added: dict[str, ContentItem] = {}
    modified: dict[str, ContentItem] = {}
    deleted: set[str] = set()
    renamed: set[tuple[str, str]] = set()

    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        meta = tokens[i]
        i += 1
        if not meta.startswith(":"):
            continue
        fields = meta[1:].split()
        if len(fields) < 5:
            continue
        src_mode, dst_mode, _src_sha, dst_sha, status = fields[:5]
        letter = status[0]

        if letter in ("R", "C"):
            if i + 1 >= len(tokens):
                break
            old_path, new_path = prefix + tokens[i], prefix + tokens[i + 1]
            i += 2
        else:
            if i >= len(tokens):
                break
            old_path = new_path = prefix + tokens[i]
            i += 1

        if _GITLINK_MODE in (src_mode, dst_mode):
            continue

        match letter:
            case "A" | "C":
                added[new_path] = ContentItem(path=new_path, blob=dst_sha)
            case "M" | "T":
                modified[new_path] = ContentItem(path=new_path, blob=dst_sha)
            case "D":
                deleted.add(old_path)
            case "R":
                renamed.add((old_path, new_path))
            case _:
                # U (unmerged) / X (unknown): nothing reliable to sync.
                continue

    return ContentDiff(
        added=frozenset(added.values()),
        modified=frozenset(modified.values()),
        deleted=frozenset(deleted),
        renamed=frozenset(renamed),
    )
