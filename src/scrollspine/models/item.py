"""ItemRecord model - one enumerated item and when it was seen.

An item is identified by the id parsed from its link. The first
observation fixes ``first_observed_at``; every later confirmation only
moves ``last_confirmed_at`` forward.

Example:
    >>> from datetime import datetime, UTC
    >>> from scrollspine.models.item import ItemRecord
    >>> t0 = datetime(2026, 1, 1, tzinfo=UTC)
    >>> t1 = datetime(2026, 1, 2, tzinfo=UTC)
    >>> old = ItemRecord(id="g-p-abc", label="Research", first_observed_at=t0, last_confirmed_at=t0)
    >>> new = ItemRecord(id="g-p-abc", label="Research notes", first_observed_at=t1, last_confirmed_at=t1)
    >>> merged = old.merged_with(new)
    >>> merged.first_observed_at == t0, merged.last_confirmed_at == t1, merged.label
    (True, True, 'Research notes')
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator, model_validator

from scrollspine.models.base import ScrollSpineModel, utc_now


class ItemRecord(ScrollSpineModel):
    """A single item observed in the enumerated panel.

    Example:
        >>> from scrollspine.models.item import ItemRecord
        >>> item = ItemRecord.observed("g-p-1", "Tax 2025", run_id="run-1")
        >>> item.first_run_id, item.last_confirmed_run_id
        ('run-1', 'run-1')
        >>> item.first_observed_at == item.last_confirmed_at
        True
    """

    id: str = Field(..., min_length=1, description="Stable identifier parsed from the item link")
    label: str = Field(..., min_length=1, description="Full, untruncated display text")
    first_observed_at: datetime = Field(default_factory=utc_now)
    last_confirmed_at: datetime = Field(default_factory=utc_now)
    first_run_id: str | None = Field(default=None, description="Run that first persisted the item")
    last_confirmed_run_id: str | None = Field(
        default=None,
        description="Run that last confirmed the item; drives retention",
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure id has no whitespace."""
        if any(ch.isspace() for ch in v):
            raise ValueError("id cannot contain whitespace")
        return v

    @model_validator(mode="after")
    def check_timestamps(self) -> ItemRecord:
        """Confirmation can never precede the first observation."""
        if self.last_confirmed_at < self.first_observed_at:
            raise ValueError("last_confirmed_at cannot be earlier than first_observed_at")
        return self

    @classmethod
    def observed(
        cls,
        item_id: str,
        label: str,
        *,
        run_id: str | None = None,
        at: datetime | None = None,
    ) -> ItemRecord:
        """Build the record for a fresh observation."""
        now = at or utc_now()
        return cls(
            id=item_id,
            label=label,
            first_observed_at=now,
            last_confirmed_at=now,
            first_run_id=run_id,
            last_confirmed_run_id=run_id,
        )

    def merged_with(self, newer: ItemRecord) -> ItemRecord:
        """Merge a later observation of the same id into this record.

        ``first_observed_at`` and ``first_run_id`` are kept from this record.
        The label and confirmation fields follow whichever side was confirmed
        later; on a tie the argument wins.

        Raises:
            ValueError: If the ids differ.

        Example:
            >>> from datetime import datetime, UTC
            >>> from scrollspine.models.item import ItemRecord
            >>> t0 = datetime(2026, 1, 1, tzinfo=UTC)
            >>> t1 = datetime(2026, 1, 3, tzinfo=UTC)
            >>> a = ItemRecord.observed("x", "A", run_id="r1", at=t1)
            >>> b = ItemRecord.observed("x", "B", run_id="r0", at=t0)
            >>> m = a.merged_with(b)
            >>> m.last_confirmed_at == t1, m.last_confirmed_run_id, m.label
            (True, 'r1', 'A')
        """
        if newer.id != self.id:
            raise ValueError(f"Cannot merge records with different ids: {self.id} != {newer.id}")

        if newer.last_confirmed_at >= self.last_confirmed_at:
            label = newer.label
            confirmed_at = newer.last_confirmed_at
            confirmed_run = newer.last_confirmed_run_id or self.last_confirmed_run_id
        else:
            label = self.label
            confirmed_at = self.last_confirmed_at
            confirmed_run = self.last_confirmed_run_id or newer.last_confirmed_run_id

        return self.model_copy(
            update={
                "label": label,
                "first_run_id": self.first_run_id or newer.first_run_id,
                "last_confirmed_at": confirmed_at,
                "last_confirmed_run_id": confirmed_run,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary.

        Example:
            >>> from datetime import datetime, UTC
            >>> from scrollspine.models.item import ItemRecord
            >>> t = datetime(2026, 1, 1, tzinfo=UTC)
            >>> ItemRecord(id="a", label="A", first_observed_at=t, last_confirmed_at=t).to_dict()["first_observed_at"]
            '2026-01-01T00:00:00+00:00'
        """
        return {
            "id": self.id,
            "label": self.label,
            "first_observed_at": self.first_observed_at.isoformat(),
            "last_confirmed_at": self.last_confirmed_at.isoformat(),
            "first_run_id": self.first_run_id,
            "last_confirmed_run_id": self.last_confirmed_run_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemRecord:
        """Create from a dictionary produced by to_dict()."""
        return cls(
            id=data["id"],
            label=data["label"],
            first_observed_at=datetime.fromisoformat(data["first_observed_at"]),
            last_confirmed_at=datetime.fromisoformat(data["last_confirmed_at"]),
            first_run_id=data.get("first_run_id"),
            last_confirmed_run_id=data.get("last_confirmed_run_id"),
        )


def merge_into(existing: dict[str, ItemRecord], record: ItemRecord) -> ItemRecord:
    """Insert or merge a record into an id-keyed map and return the stored value.

    Example:
        >>> from scrollspine.models.item import ItemRecord, merge_into
        >>> rows = {}
        >>> _ = merge_into(rows, ItemRecord.observed("a", "First"))
        >>> _ = merge_into(rows, ItemRecord.observed("a", "Second"))
        >>> len(rows), rows["a"].label
        (1, 'Second')
    """
    current = existing.get(record.id)
    merged = record if current is None else current.merged_with(record)
    existing[record.id] = merged
    return merged
