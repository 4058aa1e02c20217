"""Shared helpers for CLI commands."""

from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType
from typing import NoReturn

import typer

from hotfix.core.errors import ErrorCode
from hotfix.core.result import Err, Result
from hotfix.output.console import ConsoleProtocol
from hotfix.release.errors import ReleaseError, exit_code_for


def unwrap_or_exit[T](result: Result[T, ReleaseError], console: ConsoleProtocol) -> T:
    """Return the value, or print the error with its hint and exit.

    The exit code is derived from the error kind (see ``exit_code_for``).
    """
    if isinstance(result, Err):
        error = result.error
        console.error(error.message)
        if error.hint:
            console.hint(error.hint)
        raise typer.Exit(code=int(exit_code_for(error)))
    return result.value


def exit_with_code(code: ErrorCode) -> NoReturn:
    raise typer.Exit(code=int(code))


@contextmanager
def cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn the first Ctrl-C into a cancellation event.

    A second Ctrl-C falls back to the default KeyboardInterrupt.
    """
    cancel = threading.Event()
    previous = signal.getsignal(signal.SIGINT)

    def handler(signum: int, frame: FrameType | None) -> None:
        if cancel.is_set():
            signal.signal(signal.SIGINT, signal.default_int_handler)
            raise KeyboardInterrupt
        cancel.set()

    signal.signal(signal.SIGINT, handler)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)
