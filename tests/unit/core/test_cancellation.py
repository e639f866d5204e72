"""Tests for scrollspine.core.cancellation."""

from __future__ import annotations

import asyncio
import os
import signal

from scrollspine.core.cancellation import CancellationToken, install_signal_handlers


class TestCancellationToken:
    def test_starts_uncancelled(self):
        token = CancellationToken()
        assert not token.cancelled
        assert token.reason is None

    def test_first_reason_wins(self):
        token = CancellationToken()
        token.cancel("SIGTERM")
        token.cancel("SIGINT")
        assert token.cancelled
        assert token.reason == "SIGTERM"

    async def test_wait_times_out(self):
        assert not await CancellationToken().wait(timeout=0.01)

    async def test_wait_returns_when_cancelled(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_soon(token.cancel, "shutdown")
        assert await token.wait(timeout=1.0)


class TestSignalHandlers:
    async def test_sigterm_cancels_token(self):
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        installed = install_signal_handlers(token, loop)
        try:
            assert signal.SIGTERM in installed
            os.kill(os.getpid(), signal.SIGTERM)
            assert await token.wait(timeout=1.0)
            assert token.reason == "SIGTERM"
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
