"""Git plumbing for revision boundaries and content diffs.

Usage:
    from hotfix.git import Repository

    repo = Repository(workspace.root)
    if repo.rev_exists("ORIG_HEAD"):
        changed = repo.diff_names("ORIG_HEAD")
"""

from hotfix.git.repository import GitError, Repository, SubmoduleState

__all__ = ["GitError", "Repository", "SubmoduleState"]
