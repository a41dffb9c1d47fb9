"""Logging setup for the command line."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_level(level: str | int) -> int:
    """Convert a level name such as ``"debug"`` to its numeric value; unknown names mean WARNING."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.WARNING


def setup_logger(level: str | int = "warning", stream: TextIO | None = None) -> None:
    """Configure the root logger so that every module logs to stderr.

    Reports are written to stdout, so log records never end up inside a report.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(parse_level(level))
    # Remove all handlers associated with the root logger (avoid duplicate logs)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
