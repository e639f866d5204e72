"""Tests for scrollspine.notifier.rate_limiter."""

from __future__ import annotations

import pytest

from scrollspine.notifier.rate_limiter import NotificationRateLimiter
from scrollspine.testing import FakeClock


class TestNotificationRateLimiter:
    def test_first_notification_allowed(self):
        limiter = NotificationRateLimiter(60, clock=FakeClock())
        assert limiter.can_notify("auth_failure")
        assert limiter.remaining("auth_failure") == 0

    def test_cooldown_per_event(self):
        clock = FakeClock()
        limiter = NotificationRateLimiter(60, clock=clock)

        limiter.record("auth_failure")
        clock.advance(59)

        assert not limiter.can_notify("auth_failure")
        assert limiter.can_notify("scan_failed")
        assert limiter.remaining("auth_failure") == pytest.approx(1)

        clock.advance(1)
        assert limiter.can_notify("auth_failure")

    def test_zero_cooldown(self):
        limiter = NotificationRateLimiter(0, clock=FakeClock())
        limiter.record("scan_complete")
        assert limiter.can_notify("scan_complete")

    def test_reset(self):
        limiter = NotificationRateLimiter(60, clock=FakeClock())
        limiter.record("scan_complete")
        limiter.reset()
        assert limiter.can_notify("scan_complete")

    def test_negative_cooldown_rejected(self):
        with pytest.raises(ValueError):
            NotificationRateLimiter(-1)
