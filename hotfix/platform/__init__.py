"""OS-level adapters: subprocesses, files, HTTP."""

from .files import atomic_write_text, iter_files, read_token
from .process import ProcessError, run, run_silent, spawn_detached

__all__ = [
    "ProcessError",
    "atomic_write_text",
    "iter_files",
    "read_token",
    "run",
    "run_silent",
    "spawn_detached",
]
