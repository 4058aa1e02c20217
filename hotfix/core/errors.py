"""Error codes for CLI exit status.

These values are process exit codes and should remain stable, since
operators wire them into cron jobs and deploy hooks:
- 0: Success
- 1: User error (bad input, ambiguous changes, nothing to do)
- 2: Environment error (docker missing, disk full, lock held, router down)
- 3: Release error (build failed, health check timed out, router config invalid)
- 4: Cancelled by the operator
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    RELEASE_ERROR = 3
    CANCELLED = 4

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
