"""Simple logging-based progress reporter.

Provides a text-based progress reporter that uses Python logging,
suitable for watch mode under a process supervisor or CI.

Example:
    >>> from scrollspine.reporter import SimpleProgressReporter
    >>>
    >>> reporter = SimpleProgressReporter()
    >>> reporter.start()
    >>> # ... run_one_pass() reports progress events ...
    >>> reporter.finish(success=True)

    # Output in logs:
    # [STARTED] Enumeration pass
    # [SCROLLING] 25 items loaded
    # [EXTRACTING] 12/40 (30%)
    # [COMPLETE] Items: 40, Duration: 18.2s
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from scrollspine.protocols.progress import ProgressEvent, ProgressStage


class SimpleProgressReporter:
    """Text-based progress reporter using logging.

    Extraction events are throttled to every ``every`` items so long lists
    do not flood the log.

    Example:
        >>> import logging
        >>> from scrollspine.protocols.progress import ProgressEvent, ProgressStage
        >>> from scrollspine.reporter.simple import SimpleProgressReporter
        >>> reporter = SimpleProgressReporter(every=10)
        >>> reporter.start()
        >>> reporter.report(ProgressEvent(stage=ProgressStage.EXTRACTING, current=10, total=40))
        >>> reporter.last_line
        '[EXTRACTING] 10/40 (25%)'
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        log_level: int = logging.INFO,
        every: int = 25,
    ):
        """Initialize the reporter.

        Args:
            logger: Logger to use (default: scrollspine.progress logger)
            log_level: Logging level for progress messages
            every: Log extraction progress every N items
        """
        self._logger = logger or logging.getLogger("scrollspine.progress")
        self._log_level = log_level
        self._every = max(1, every)
        self._stats: dict[str, Any] = {}
        self.last_line: str | None = None

    def start(self) -> None:
        """Mark the start of a pass."""
        self._stats = {"started_at": datetime.now(), "items": 0}
        self._emit("[STARTED] Enumeration pass")

    def report(self, event: ProgressEvent) -> None:
        """Report a progress event.

        Args:
            event: Progress event from the pass
        """
        stage = event.stage.value.upper()
        if event.stage is ProgressStage.EXTRACTING:
            self._stats["items"] = event.current
            if event.total > 0:
                if event.current % self._every and event.current != event.total:
                    return
                self._emit(
                    f"[{stage}] {event.current:,}/{event.total:,} ({event.progress_percent:.0f}%)"
                )
                return
        if event.stage is ProgressStage.SCROLLING and not event.message:
            self._emit(f"[{stage}] {event.current:,} items loaded")
            return
        self._emit(f"[{stage}] {event.message}" if event.message else f"[{stage}]")

    def finish(self, success: bool) -> None:
        """Mark the end of a pass.

        Args:
            success: Whether the pass completed and was promoted
        """
        started = self._stats.get("started_at") or datetime.now()
        elapsed = (datetime.now() - started).total_seconds()
        status = "COMPLETE" if success else "FAILED"
        self._emit(f"[{status}] Items: {self._stats.get('items', 0):,}, Duration: {elapsed:.1f}s")

    def _emit(self, line: str) -> None:
        self.last_line = line
        self._logger.log(self._log_level, line)


__all__ = ["SimpleProgressReporter"]
