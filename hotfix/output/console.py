"""Console output abstraction.

Release steps report progress through ``ConsoleProtocol`` and never import
rich directly. Three backends exist:

- ``RichConsole`` for the operator's terminal;
- ``RichConsole(file=..., timestamps=True)`` for the detached rollback
  worker, whose output lands in a per-task log file;
- ``MockConsole`` for tests.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Protocol, TextIO

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "OutputRecord",
    "RichConsole",
    "Style",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()  # commands being run, hints
    BOLD = auto()
    HEADER = auto()  # release phase

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Interface for styled progress output."""

    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def hint(self, message: str) -> None:
        """Print an actionable remedy after an error or warning."""
        ...

    def newline(self) -> None: ...


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class RichConsole:
    """Console implementation using the Rich library.

    Args:
        file: Write here instead of stdout (colors are disabled for files).
        timestamps: Prefix each line with ``[YYYY-mm-dd HH:MM:SS]``.
        clock: Timestamp source, overridable in tests.
    """

    def __init__(
        self,
        *,
        file: TextIO | None = None,
        timestamps: bool = False,
        clock: Callable[[], str] = _timestamp,
    ) -> None:
        # Import Rich lazily so the worker process stays cheap to start.
        from rich.console import Console

        if file is None:
            self._console = Console(stderr=False)
        else:
            self._console = Console(file=file, no_color=True, highlight=False, soft_wrap=True)
        self._timestamps = timestamps
        self._clock = clock
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.BOLD: "bold",
            Style.HEADER: "blue bold",
        }

    def _emit(self, markup: str, style: str = "") -> None:
        if self._timestamps:
            markup = f"\\[{self._clock()}] {markup}"
        if style:
            self._console.print(markup, style=style)
        else:
            self._console.print(markup)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        from rich.markup import escape

        self._emit(escape(message), self._style_map.get(style, ""))

    def success(self, message: str) -> None:
        from rich.markup import escape

        self._emit(f"[green]OK[/green] {escape(message)}")

    def error(self, message: str) -> None:
        from rich.markup import escape

        self._emit(f"[red bold]error:[/red bold] {escape(message)}")

    def warning(self, message: str) -> None:
        from rich.markup import escape

        self._emit(f"[yellow]warning:[/yellow] {escape(message)}")

    def info(self, message: str) -> None:
        from rich.markup import escape

        self._emit(f"[cyan]info:[/cyan] {escape(message)}")

    def header(self, message: str) -> None:
        from rich.markup import escape

        if not self._timestamps:
            self._console.print()
        self._emit(f"[blue bold]{escape(message)}[/blue bold]")

    def hint(self, message: str) -> None:
        from rich.markup import escape

        self._emit(f"[dim]hint: {escape(message)}[/dim]")

    def newline(self) -> None:
        self._console.print()


@dataclass
class OutputRecord:
    """A single output record for MockConsole."""

    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console implementation that captures output for testing."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"OK {message}", Style.SUCCESS))

    def error(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"error: {message}", Style.ERROR))

    def warning(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"warning: {message}", Style.WARNING))

    def info(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"info: {message}", Style.INFO))

    def header(self, message: str) -> None:
        self.outputs.append(OutputRecord(message, Style.HEADER))

    def hint(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"hint: {message}", Style.DIM))

    def newline(self) -> None:
        self.outputs.append(OutputRecord("", Style.DEFAULT))

    # Test helpers

    def clear(self) -> None:
        self.outputs.clear()

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]

    def count(self, style: Style) -> int:
        return sum(1 for o in self.outputs if o.style == style)
