"""Error taxonomy for release and sync workflows.

Every fatal condition is a ``ReleaseError`` returned up the call chain; the
active slot is never touched once one has been produced. Degradable failures
(reindex steps, cache eviction, image prune, changelog) are printed as
warnings where they happen and never become a ``ReleaseError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from hotfix.core.errors import ErrorCode

__all__ = ["ReleaseError", "ReleaseErrorKind", "exit_code_for"]

ReleaseErrorKind = Literal[
    "precondition_failed",
    "lock_held",
    "build_failed",
    "start_failed",
    "health_timeout",
    "config_invalid",
    "reload_failed",
    "no_revision_boundary",
    "no_changes",
    "ambiguous_changes",
    "diff_failed",
    "cancelled",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Fatal release failure with an actionable hint for the operator."""

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


_EXIT_CODES: dict[str, ErrorCode] = {
    "precondition_failed": ErrorCode.ENV_ERROR,
    "lock_held": ErrorCode.ENV_ERROR,
    "build_failed": ErrorCode.RELEASE_ERROR,
    "start_failed": ErrorCode.RELEASE_ERROR,
    "health_timeout": ErrorCode.RELEASE_ERROR,
    "config_invalid": ErrorCode.RELEASE_ERROR,
    "reload_failed": ErrorCode.RELEASE_ERROR,
    "no_revision_boundary": ErrorCode.USER_ERROR,
    "no_changes": ErrorCode.USER_ERROR,
    "ambiguous_changes": ErrorCode.USER_ERROR,
    "diff_failed": ErrorCode.ENV_ERROR,
    "cancelled": ErrorCode.CANCELLED,
}


def exit_code_for(error: ReleaseError) -> ErrorCode:
    return _EXIT_CODES.get(error.kind, ErrorCode.RELEASE_ERROR)
