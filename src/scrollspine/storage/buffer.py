"""Per-store write buffer with a debounce flush policy.

Records are buffered by id, merging repeated observations, and flushed in
batches. A failed flush leaves the buffer untouched so the next attempt
writes the same records again.

Example:
    >>> from scrollspine.models import ItemRecord
    >>> from scrollspine.storage.buffer import FlushPolicy, WriteBuffer
    >>> clock = iter([0.0, 1.0, 6.0]).__next__
    >>> buffer = WriteBuffer(FlushPolicy(interval=5.0, max_pending=100), clock=clock)
    >>> buffer.add(ItemRecord.observed("a", "Alpha"))  # first pending write at t=0
    >>> buffer.is_due()  # t=1
    False
    >>> buffer.is_due()  # t=6
    True
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from scrollspine.models.item import ItemRecord, merge_into


@dataclass(frozen=True)
class FlushPolicy:
    """When a buffer should be flushed.

    Attributes:
        interval: Seconds since the first pending write before flushing.
            Zero flushes on every add.
        max_pending: Flush as soon as this many records are pending.
    """

    interval: float = 5.0
    max_pending: int = 500

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError("interval cannot be negative")
        if self.max_pending < 1:
            raise ValueError("max_pending must be at least 1")


class WriteBuffer:
    """An id-keyed map of records waiting to be written to one store."""

    def __init__(self, policy: FlushPolicy | None = None, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.policy = policy or FlushPolicy()
        self._clock = clock
        self._pending: dict[str, ItemRecord] = {}
        self._first_pending_at: float | None = None

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._pending

    @property
    def pending(self) -> int:
        return len(self._pending)

    def add(self, record: ItemRecord) -> None:
        """Buffer a record, merging with any pending record for the same id."""
        if not self._pending:
            self._first_pending_at = self._clock()
        merge_into(self._pending, record)

    def is_due(self) -> bool:
        """True if the policy says the pending records should be written now."""
        if not self._pending:
            return False
        if len(self._pending) >= self.policy.max_pending:
            return True
        assert self._first_pending_at is not None
        return self._clock() - self._first_pending_at >= self.policy.interval

    def snapshot(self) -> list[ItemRecord]:
        """The records to write, without removing them."""
        return list(self._pending.values())

    def mark_flushed(self, written: list[ItemRecord]) -> None:
        """Drop records that were written and have not changed since."""
        for record in written:
            if self._pending.get(record.id) is record:
                del self._pending[record.id]
        self._first_pending_at = self._clock() if self._pending else None

    def clear(self) -> None:
        self._pending.clear()
        self._first_pending_at = None
