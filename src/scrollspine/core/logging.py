"""Logging setup.

Unattended runs write single-line, ISO-timestamped records so they can be
tailed or shipped to journald; interactive runs can use Rich instead.

Example:
    >>> import logging
    >>> from scrollspine.core.logging import PlainFormatter
    >>> record = logging.LogRecord("scrollspine", logging.WARNING, "", 0, "retry later", None, None)
    >>> line = PlainFormatter().format(record)
    >>> "[WARNING] retry later" in line
    True
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMATS = ("plain", "rich")


class PlainFormatter(logging.Formatter):
    """Format: ``2026-01-04T10:00:00.000+00:00 [INFO] message``."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds")
        line = f"{timestamp} [{record.levelname}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: str = "INFO", fmt: str = "plain") -> logging.Logger:
    """Configure the ``scrollspine`` logger hierarchy.

    Args:
        level: Logging level name.
        fmt: "plain" for single-line records on stderr, "rich" for a
            RichHandler.

    Returns:
        The configured package logger.

    Raises:
        ValueError: If fmt is not a known format.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format '{fmt}'. Use one of: {', '.join(LOG_FORMATS)}")

    handler: logging.Handler
    if fmt == "rich":
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(PlainFormatter())

    logger = logging.getLogger("scrollspine")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger
