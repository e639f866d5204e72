"""Telegram Bot API notification channel.

Setup:
    1. Message @BotFather on Telegram and create a bot.
    2. Add the bot to a group or channel.
    3. Read the chat id from ``https://api.telegram.org/bot<TOKEN>/getUpdates``.
    4. Set SCROLLSPINE_TELEGRAM_BOT_TOKEN and SCROLLSPINE_TELEGRAM_CHAT_ID.
"""

from __future__ import annotations

import html
import logging

import httpx

from scrollspine.protocols.notification import Notification

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier:
    """Send notifications through the Telegram Bot API.

    Delivery failures are logged and reported as False, never raised.

    Example:
        >>> from scrollspine.notifier.telegram import TelegramNotifier
        >>> TelegramNotifier("123:abc", "-100200").name
        'telegram'
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.name = "telegram"
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.last_error: str | None = None

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    @staticmethod
    def format_message(notification: Notification) -> str:
        """HTML body for the message.

        Example:
            >>> from scrollspine.notifier.telegram import TelegramNotifier
            >>> from scrollspine.protocols.notification import Notification
            >>> TelegramNotifier.format_message(Notification(title="Scan failed", message="a < b"))
            '<b>Scan failed</b>\\na &lt; b'
        """
        return f"<b>{html.escape(notification.title)}</b>\n{html.escape(notification.message)}"

    async def send(self, notification: Notification) -> bool:
        await self.initialize()
        assert self._client is not None
        url = f"{TELEGRAM_API}/bot{self._bot_token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": self.format_message(notification),
            "parse_mode": "HTML",
        }
        try:
            response = await self._client.post(url, json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.last_error = str(e)
            logger.warning(f"Telegram notification failed: {e}")
            return False

        if response.status_code >= 400 or not data.get("ok"):
            self.last_error = data.get("description") or f"HTTP {response.status_code}"
            logger.warning(f"Telegram notification rejected: {self.last_error}")
            return False

        self.last_error = None
        return True
