"""Watch interval parsing and formatting.

Example:
    >>> from scrollspine.watch.interval import format_interval, parse_interval
    >>> parse_interval("15m"), parse_interval("90s"), parse_interval("2")
    (900, 90, 120)
    >>> format_interval(5400)
    '1h 30m'
"""

from __future__ import annotations

import re

from scrollspine.core.exceptions import ConfigurationError

INTERVAL_PATTERN = re.compile(r"^(\d+)(s|m|h)?$")
UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600}


def parse_interval(value: str, *, minimum: float = 0) -> int:
    """Parse ``30s``, ``15m``, ``1h`` or a bare number of minutes into seconds.

    Raises:
        ConfigurationError: The value is malformed or below ``minimum``.

    Example:
        >>> from scrollspine.watch.interval import parse_interval
        >>> parse_interval("30s", minimum=60)  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        ConfigurationError: Interval 30s is below the minimum of 1m
    """
    match = INTERVAL_PATTERN.match(value.strip().lower())
    if match is None:
        raise ConfigurationError(f"Invalid interval format: {value!r}. Use e.g. 30s, 15m, 1h")

    amount, unit = match.groups()
    seconds = int(amount) * UNIT_SECONDS[unit or "m"]
    if seconds < minimum:
        raise ConfigurationError(
            f"Interval {format_interval(seconds)} is below the minimum of {format_interval(minimum)}"
        )
    return seconds


def format_interval(seconds: float) -> str:
    """Human-readable interval.

    Example:
        >>> from scrollspine.watch.interval import format_interval
        >>> format_interval(45), format_interval(3600), format_interval(61)
        ('45s', '1h', '1m 1s')
    """
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
