"""Styled report lines and the sinks they are written to."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, TextIO

from rich.console import Console
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Iterator


class Style(str, Enum):
    """Semantic color category of a report line."""

    REPO_NAME = "RepoName"
    PROJECT_NAME = "ProjectName"
    PACKAGE_REFERENCE = "PackageReference"
    PROJECT_DEPENDENCY = "ProjectDependency"
    UPGRADE_WARNING = "UpgradeWarning"
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


@dataclass(frozen=True)
class StyledLine:
    """One line of report output."""

    text: str
    style: Style = Style.INFO

    def __str__(self) -> str:
        """Return the line text."""
        return self.text


class OutputSink(ABC):
    """Destination for report lines. Empty lines are dropped."""

    def write_line(self, text: str, style: Style = Style.INFO) -> None:
        """Write a line of text in the given style."""
        if not text:
            return
        self.emit(StyledLine(text, style))

    @abstractmethod
    def emit(self, line: StyledLine) -> None:
        """Write a non-empty line."""
        raise NotImplementedError

    def warning(self, text: str) -> None:
        """Write a warning line."""
        self.write_line(text, Style.WARNING)

    def error(self, text: str) -> None:
        """Write an error line."""
        self.write_line(text, Style.ERROR)


class LineBuffer(OutputSink):
    """Keeps report lines in memory."""

    def __init__(self) -> None:
        """Initialize an empty buffer."""
        self.lines: list[StyledLine] = []

    def emit(self, line: StyledLine) -> None:
        """Append a line to the buffer."""
        self.lines.append(line)

    def texts(self) -> list[str]:
        """Return the plain text of every buffered line."""
        return [line.text for line in self.lines]

    def flush_to(self, sink: OutputSink) -> None:
        """Write every buffered line to ``sink`` and empty the buffer."""
        for line in self.lines:
            sink.emit(line)
        self.lines = []

    def __len__(self) -> int:
        """Return the number of buffered lines."""
        return len(self.lines)

    def __str__(self) -> str:
        """Return the buffered report as text."""
        return "\n".join(self.texts())


class ConsoleSink(OutputSink):
    """Prints lines to the terminal in the color of their style."""

    COLORS: ClassVar[dict[Style, str]] = {
        Style.REPO_NAME: "green",
        Style.PROJECT_NAME: "yellow",
        Style.PACKAGE_REFERENCE: "bright_black",
        Style.PROJECT_DEPENDENCY: "yellow4",
        Style.UPGRADE_WARNING: "red",
        Style.INFO: "white",
        Style.WARNING: "yellow",
        Style.ERROR: "bold red",
    }

    def __init__(self, file: TextIO | None = None, *, color: bool | None = None) -> None:
        """Initialize a console sink writing to ``file`` (stdout by default)."""
        self.console = Console(
            file=file if file is not None else sys.stdout,
            highlight=False,
            soft_wrap=True,
            no_color=None if color is None else not color,
        )

    def emit(self, line: StyledLine) -> None:
        """Print a line; the text is never interpreted as console markup."""
        self.console.print(Text(line.text, style=self.COLORS.get(line.style, "")))


@contextmanager
def buffered(sink: OutputSink) -> Iterator[LineBuffer]:
    """Collect lines in memory and write them to ``sink`` only if the block finishes without an exception.

    A report that fails halfway is therefore never printed in truncated form.
    """
    buffer = LineBuffer()
    yield buffer
    buffer.flush_to(sink)
