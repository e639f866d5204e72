"""Tests for scrollspine.watch.interval."""

from __future__ import annotations

import pytest

from scrollspine.core.exceptions import ConfigurationError
from scrollspine.watch.interval import format_interval, parse_interval


class TestParseInterval:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("30s", 30),
            ("15m", 900),
            ("1h", 3600),
            ("2", 120),
            (" 5M ", 300),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_interval(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "1d", "1.5h", "-5m", "m"])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError, match="Invalid interval format"):
            parse_interval(value)

    def test_below_minimum(self):
        with pytest.raises(ConfigurationError, match="below the minimum of 1m"):
            parse_interval("30s", minimum=60)

    def test_at_minimum(self):
        assert parse_interval("1m", minimum=60) == 60


class TestFormatInterval:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0s"), (45, "45s"), (60, "1m"), (61, "1m 1s"), (3600, "1h"), (5400, "1h 30m"), (3661, "1h 1m 1s")],
    )
    def test_format(self, seconds, expected):
        assert format_interval(seconds) == expected
