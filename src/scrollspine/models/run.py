"""Run models - one pass of enumeration as seen by a durable store.

A run starts ``active`` and ends either ``completed`` (its flush succeeded
and it was promoted) or ``failed``. Failed runs never trigger retention
cleanup.

Example:
    >>> from scrollspine.models.run import Run, RunStats, RunStatus
    >>> run = Run()
    >>> run.status
    <RunStatus.ACTIVE: 'active'>
    >>> done = run.complete(RunStats(items_found=40, items_extracted=39))
    >>> done.status, done.items_extracted
    (<RunStatus.COMPLETED: 'completed'>, 39)
    >>> run.status  # the original is untouched
    <RunStatus.ACTIVE: 'active'>
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import Field

from scrollspine.models.base import ScrollSpineModel, utc_now


class RunStatus(str, Enum):
    """Run lifecycle states.

    Example:
        >>> from scrollspine.models.run import RunStatus
        >>> RunStatus.FAILED.value
        'failed'
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStats(ScrollSpineModel):
    """Counts reported when a run completes."""

    items_found: int = Field(default=0, ge=0, description="Items materialized in the panel")
    items_extracted: int = Field(default=0, ge=0, description="Items persisted this run")


class Run(ScrollSpineModel):
    """Records a single enumeration run in one store.

    Example:
        >>> from scrollspine.models.run import Run
        >>> failed = Run(id="r1").fail("flush failed")
        >>> failed.is_failure, failed.error
        (True, 'flush failed')
    """

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique run identifier")
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = Field(default=None)
    status: RunStatus = Field(default=RunStatus.ACTIVE)
    items_found: int = Field(default=0, ge=0)
    items_extracted: int = Field(default=0, ge=0)
    error: str | None = Field(default=None, description="Why the run failed")

    @property
    def is_complete(self) -> bool:
        """True once the run has left the active state."""
        return self.status != RunStatus.ACTIVE

    @property
    def is_success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def is_failure(self) -> bool:
        return self.status == RunStatus.FAILED

    @property
    def duration_seconds(self) -> float | None:
        """Run duration in seconds, or None while active."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def complete(self, stats: RunStats, at: datetime | None = None) -> Run:
        """Return a completed copy carrying the final counts."""
        return self.model_copy(
            update={
                "status": RunStatus.COMPLETED,
                "completed_at": at or utc_now(),
                "items_found": stats.items_found,
                "items_extracted": stats.items_extracted,
                "error": None,
            }
        )

    def fail(self, error: str, at: datetime | None = None) -> Run:
        """Return a failed copy recording the reason."""
        return self.model_copy(
            update={
                "status": RunStatus.FAILED,
                "completed_at": at or utc_now(),
                "error": error,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "status": self.status.value,
            "items_found": self.items_found,
            "items_extracted": self.items_extracted,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Run:
        """Create from a dictionary produced by to_dict().

        Example:
            >>> from scrollspine.models.run import Run
            >>> run = Run(id="r1")
            >>> Run.from_dict(run.to_dict()) == run
            True
        """
        completed_at = data.get("completed_at")
        return cls(
            id=data["id"],
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            status=RunStatus(data["status"]),
            items_found=data.get("items_found", 0),
            items_extracted=data.get("items_extracted", 0),
            error=data.get("error"),
        )


class RunState(ScrollSpineModel):
    """The current-run pointer of a store.

    Moving ``current_run_id`` to a completed run is what makes promotion a
    single atomic step.
    """

    current_run_id: str | None = None
    last_successful_run_id: str | None = None
    updated_at: datetime | None = None

    def promoted(self, run_id: str, at: datetime | None = None) -> RunState:
        """Return the state after promoting run_id.

        Example:
            >>> from scrollspine.models.run import RunState
            >>> RunState().promoted("r2").current_run_id
            'r2'
        """
        return RunState(
            current_run_id=run_id,
            last_successful_run_id=run_id,
            updated_at=at or utc_now(),
        )


class CleanupResult(ScrollSpineModel):
    """What a retention pass removed.

    Example:
        >>> from scrollspine.models.run import CleanupResult
        >>> CleanupResult().is_empty
        True
    """

    runs_deleted: int = Field(default=0, ge=0)
    items_deleted: int = Field(default=0, ge=0)

    @property
    def is_empty(self) -> bool:
        return self.runs_deleted == 0 and self.items_deleted == 0
