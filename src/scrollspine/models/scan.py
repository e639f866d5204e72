"""Scan results and pass outcomes.

A ScanResult describes what one pass saw; a pass outcome is either
PassOk (carrying the ScanResult) or PassFailed (carrying why).

Example:
    >>> from scrollspine.models.scan import ScanResult
    >>> result = ScanResult.from_observation(
    ...     total_found=4,
    ...     observed_ids={"a", "b", "c"},
    ...     failed=1,
    ...     previous_ids={"a", "z"},
    ... )
    >>> result.new_count, result.unchanged_count, result.extracted
    (2, 1, 3)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ScanResult:
    """Counts and ids for one enumeration pass.

    Construction rejects results whose delta does not add up.

    Example:
        >>> from scrollspine.models.scan import ScanResult
        >>> ScanResult(total_found=2, extracted=2, failed=0, new_count=1, unchanged_count=0)
        Traceback (most recent call last):
        ...
        ValueError: new_count + unchanged_count (1) must equal extracted (2)
    """

    total_found: int
    extracted: int
    failed: int
    new_count: int
    unchanged_count: int
    observed_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for name in ("total_found", "extracted", "failed", "new_count", "unchanged_count"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.new_count + self.unchanged_count != self.extracted:
            raise ValueError(
                f"new_count + unchanged_count ({self.new_count + self.unchanged_count}) "
                f"must equal extracted ({self.extracted})"
            )

    @classmethod
    def from_observation(
        cls,
        total_found: int,
        observed_ids: Iterable[str],
        failed: int,
        previous_ids: Iterable[str] = (),
    ) -> ScanResult:
        """Compute the delta against the ids seen by the previous pass."""
        observed = frozenset(observed_ids)
        previous = frozenset(previous_ids)
        unchanged = len(observed & previous)
        return cls(
            total_found=total_found,
            extracted=len(observed),
            failed=failed,
            new_count=len(observed) - unchanged,
            unchanged_count=unchanged,
            observed_ids=observed,
        )

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    def summary(self) -> str:
        """One-line description used in logs and notifications.

        Example:
            >>> from scrollspine.models.scan import ScanResult
            >>> ScanResult.from_observation(3, {"a", "b"}, 1, {"a"}).summary()
            'found 3, extracted 2 (1 new, 1 unchanged), 1 failed'
        """
        return (
            f"found {self.total_found}, extracted {self.extracted} "
            f"({self.new_count} new, {self.unchanged_count} unchanged), {self.failed} failed"
        )


@dataclass(frozen=True)
class PassOk:
    """A pass that completed and was promoted."""

    result: ScanResult

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class PassFailed:
    """A pass that failed. The run was marked failed and nothing was deleted.

    Example:
        >>> from scrollspine.models.scan import PassFailed
        >>> outcome = PassFailed(reason="login timed out", error_type="AuthRecoveryError", auth_related=True)
        >>> outcome.ok, outcome.session_dead
        (False, False)
    """

    reason: str
    error_type: str
    auth_related: bool = False
    session_dead: bool = False

    @property
    def ok(self) -> bool:
        return False


PassOutcome = PassOk | PassFailed
