"""Progress reporting protocol.

A pass announces each stage it enters (navigate, authenticate, open the
panel, scroll, extract, store) so long passes can be followed in the log.

Example:
    >>> from scrollspine.protocols.progress import ProgressEvent, ProgressStage
    >>> event = ProgressEvent(stage=ProgressStage.EXTRACTING, current=12, total=48)
    >>> event.progress_percent
    25.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class ProgressStage(Enum):
    """Where a pass currently is."""

    NAVIGATING = "navigating"
    AUTHENTICATING = "authenticating"
    OPENING = "opening"
    SCROLLING = "scrolling"
    EXTRACTING = "extracting"
    STORING = "storing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ProgressEvent:
    """One progress update.

    Attributes:
        stage: Stage the pass is in.
        message: Human-readable status message.
        current: Items handled or materialized so far.
        total: Items expected, 0 when not yet known.
        pass_number: Watch pass the event belongs to (1-based, 0 outside watch mode).
        started_at: When the event was created.
        metadata: Stage-specific values such as the scroll iteration.
    """

    stage: ProgressStage
    message: str = ""
    current: int = 0
    total: int = 0
    pass_number: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def progress_percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(100.0, self.current * 100 / self.total)


@runtime_checkable
class ProgressReporter(Protocol):
    """Receives the events of one pass, bracketed by start and finish."""

    def start(self) -> None:
        ...

    def report(self, event: ProgressEvent) -> None:
        ...

    def finish(self, success: bool) -> None:
        """Called once per pass; success means the run was promoted."""
        ...


class NullProgressReporter:
    """Discards everything. Used when no reporter is given."""

    def start(self) -> None:
        pass

    def report(self, event: ProgressEvent) -> None:
        pass

    def finish(self, success: bool) -> None:
        pass


__all__ = [
    "ProgressStage",
    "ProgressEvent",
    "ProgressReporter",
    "NullProgressReporter",
]
