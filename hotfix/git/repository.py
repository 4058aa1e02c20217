"""Git repository abstraction.

Read-mostly git plumbing used to find the revision boundary of a release,
list changed paths, and diff the content tree (including a content tree that
is a nested repository). All operations return Result types.

Usage:
    repo = Repository(workspace.root)
    match repo.diff_names("ORIG_HEAD"):
        case Ok(paths):
            ...
        case Err(e):
            console.error(e.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from hotfix.core.result import Err, Ok, Result
from hotfix.platform.process import ProcessError
from hotfix.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "clone", "submodule"})

__all__ = [
    "GitError",
    "Repository",
    "SubmoduleState",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed
        message: Error message (stderr when available)
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class SubmoduleState:
    """One line of ``git submodule status``.

    The prefix is ``-`` (not initialized), ``+`` (checked-out commit differs
    from the recorded pointer), ``U`` (merge conflicts) or a space (clean).
    """

    prefix: str
    sha: str
    path: str

    @property
    def is_clean(self) -> bool:
        return self.prefix == " "


class Repository:
    """Git repository rooted at ``path``."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """True if ``path`` is inside a git work tree."""
        result = self._run(["rev-parse", "--is-inside-work-tree"])
        return isinstance(result, Ok) and result.value.strip() == "true"

    def nested(self, relative: str) -> Repository:
        """Repository for a nested checkout (e.g. a submodule path)."""
        return Repository(self.path / relative)

    def rev_exists(self, rev: str) -> bool:
        """True if ``rev`` resolves to a commit."""
        result = self._run(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        return isinstance(result, Ok)

    def current_branch(self) -> str | None:
        """Current branch name, None if detached or on error."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def short_head(self) -> str | None:
        result = self._run(["rev-parse", "--short", "HEAD"])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def diff_names(
        self,
        base: str,
        head: str = "HEAD",
        paths: tuple[str, ...] = (),
    ) -> Result[list[str], GitError]:
        """Paths changed between two revisions (``git diff --name-only -z``)."""
        args = ["diff", "--name-only", "-z", base, head]
        if paths:
            args.extend(["--", *paths])
        result = self._run(args)
        match result:
            case Err(e):
                return Err(self._error("diff", e))
            case Ok(stdout):
                return Ok(_nul_fields(stdout))

    def worktree_changes(self) -> Result[list[str], GitError]:
        """Unstaged, staged and untracked paths, deduplicated and sorted."""
        changed: set[str] = set()
        for args in (
            ["diff", "--name-only", "-z"],
            ["diff", "--name-only", "-z", "--cached"],
            ["ls-files", "-z", "--others", "--exclude-standard"],
        ):
            result = self._run(args)
            if isinstance(result, Err):
                return Err(self._error(args[0], result.error))
            changed.update(_nul_fields(result.value))
        return Ok(sorted(changed))

    def is_clean(self) -> bool:
        """True if the working tree has no changes; False if status fails."""
        result = self._run(["status", "--porcelain"])
        match result:
            case Ok(stdout):
                return stdout.strip() == ""
            case Err(_):
                return False

    def raw_diff(
        self,
        base: str,
        head: str = "HEAD",
        paths: tuple[str, ...] = (),
        *,
        detect_renames: bool = True,
    ) -> Result[str, GitError]:
        """NUL-separated ``git diff --raw`` output with full blob ids."""
        args = [
            "diff",
            "--raw",
            "-z",
            "--no-abbrev",
            "-M" if detect_renames else "--no-renames",
            base,
            head,
        ]
        if paths:
            args.extend(["--", *paths])
        result = self._run(args)
        match result:
            case Err(e):
                return Err(self._error("diff --raw", e))
            case Ok(stdout):
                return Ok(stdout)

    def tree_entry_sha(self, rev: str, path: str) -> str | None:
        """Object id recorded for ``path`` at ``rev`` (a gitlink sha for submodules)."""
        result = self._run(["ls-tree", rev, path])
        if isinstance(result, Err):
            return None
        for line in _lines(result.value):
            meta, _, _name = line.partition("\t")
            parts = meta.split()
            if len(parts) == 3:
                return parts[2]
        return None

    def submodule_paths(self) -> list[str]:
        """Paths declared in .gitmodules (empty when there is none)."""
        gitmodules = self.path / ".gitmodules"
        if not gitmodules.is_file():
            return []
        result = self._run(
            ["config", "-f", str(gitmodules), "--get-regexp", r"^submodule\..*\.path$"]
        )
        if isinstance(result, Err):
            return []
        paths: list[str] = []
        for line in _lines(result.value):
            parts = line.split(maxsplit=1)
            if len(parts) == 2:
                paths.append(parts[1].strip())
        return paths

    def submodule_sync(self) -> Result[None, GitError]:
        result = self._run(["submodule", "sync", "--recursive"])
        if isinstance(result, Err):
            return Err(self._error("submodule sync", result.error))
        return Ok(None)

    def submodule_update(self) -> Result[None, GitError]:
        """Init and check out the pinned commits of every submodule."""
        result = self._run(["submodule", "update", "--init", "--recursive"])
        if isinstance(result, Err):
            return Err(self._error("submodule update", result.error))
        return Ok(None)

    def submodule_status(self) -> Result[list[SubmoduleState], GitError]:
        result = self._run(["submodule", "status", "--recursive"])
        match result:
            case Err(e):
                return Err(self._error("submodule status", e))
            case Ok(stdout):
                return Ok(_parse_submodule_status(stdout))

    def log_oneline(self, base: str, head: str = "HEAD") -> list[str]:
        """Commit subjects in ``base..head``; empty on error."""
        result = self._run(["log", "--oneline", "--no-decorate", f"{base}..{head}"])
        if isinstance(result, Err):
            return []
        return _lines(result.value)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    def _error(self, command: str, e: ProcessError) -> GitError:
        return GitError(
            command=command,
            message=e.stderr.strip() or e.stdout.strip() or f"git {command} failed",
            returncode=e.returncode,
        )


def _lines(output: str) -> list[str]:
    return [ln.strip() for ln in output.splitlines() if ln.strip()]


def _parse_submodule_status(output: str) -> list[SubmoduleState]:
    states: list[SubmoduleState] = []
    for line in output.splitlines():
        if len(line) < 2 or not line.strip():
            continue
        prefix = line[0]
        parts = line[1:].split()
        if len(parts) < 2:
            continue
        states.append(SubmoduleState(prefix=prefix, sha=parts[0], path=parts[1]))
    return states


def _nul_fields(output: str) -> list[str]:
    # -z output: paths are NUL-terminated and never C-quoted
    return [field for field in output.split("\0") if field]
