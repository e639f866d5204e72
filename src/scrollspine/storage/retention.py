"""Retention planning shared by the local stores.

Retention keeps the ``keep_count`` most recently completed runs. An item
survives if the run that last confirmed it is retained. Runs that did not
complete but started inside the retained window are retained too, so an
interrupted pass never costs the items it already confirmed.

Example:
    >>> from datetime import datetime, timedelta, UTC
    >>> from scrollspine.models import ItemRecord, Run, RunStats
    >>> from scrollspine.storage.retention import plan_retention
    >>> t0 = datetime(2026, 1, 1, tzinfo=UTC)
    >>> runs = [
    ...     Run(id=f"r{i}", started_at=t0 + timedelta(hours=i)).complete(
    ...         RunStats(), at=t0 + timedelta(hours=i, minutes=5)
    ...     )
    ...     for i in range(4)
    ... ]
    >>> items = [ItemRecord.observed("old", "Old", run_id="r0"), ItemRecord.observed("new", "New", run_id="r3")]
    >>> plan = plan_retention(runs, items, keep_count=3, now=t0 + timedelta(days=1))
    >>> sorted(plan.run_ids), sorted(plan.item_ids)
    (['r0'], ['old'])
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from scrollspine.models.base import utc_now
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import Run, RunStatus

FAILED_RUN_MAX_AGE = timedelta(days=7)


@dataclass(frozen=True)
class RetentionPlan:
    """Ids a retention pass will delete."""

    run_ids: frozenset[str] = field(default_factory=frozenset)
    item_ids: frozenset[str] = field(default_factory=frozenset)
    retained_run_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.run_ids and not self.item_ids


def _completion_key(run: Run) -> datetime:
    return run.completed_at or run.started_at


def retained_runs(runs: Iterable[Run], keep_count: int) -> list[Run] | None:
    """The keep_count newest completed runs, or None if there are fewer."""
    completed = sorted(
        (run for run in runs if run.status == RunStatus.COMPLETED),
        key=_completion_key,
        reverse=True,
    )
    if len(completed) < keep_count:
        return None
    return completed[:keep_count]


def plan_retention(
    runs: Iterable[Run],
    items: Iterable[ItemRecord],
    keep_count: int,
    now: datetime | None = None,
) -> RetentionPlan:
    """Work out what retention may delete.

    Nothing is planned until keep_count completed runs exist. Items with
    no ``last_confirmed_run_id`` are never deleted. Failed or abandoned
    runs are removed once they are older than seven days and precede the
    retained window.
    """
    if keep_count < 1:
        raise ValueError("keep_count must be at least 1")

    runs = list(runs)
    kept = retained_runs(runs, keep_count)
    if kept is None:
        return RetentionPlan()

    now = now or utc_now()
    window_start = min(run.started_at for run in kept)
    retained = {run.id for run in kept}
    retained.update(
        run.id for run in runs if run.status != RunStatus.COMPLETED and run.started_at >= window_start
    )

    doomed_runs: set[str] = set()
    for run in runs:
        if run.id in retained:
            continue
        if run.status == RunStatus.COMPLETED:
            doomed_runs.add(run.id)
        elif now - run.started_at > FAILED_RUN_MAX_AGE:
            doomed_runs.add(run.id)

    doomed_items = {
        item.id
        for item in items
        if item.last_confirmed_run_id is not None and item.last_confirmed_run_id not in retained
    }

    return RetentionPlan(
        run_ids=frozenset(doomed_runs),
        item_ids=frozenset(doomed_items),
        retained_run_ids=frozenset(retained),
    )
