"""Classify the page's authentication state.

Checks run cheapest first: URL markers, then the authenticated UI, then
login UI markers.

Example:
    >>> from scrollspine.auth.detector import classify_url
    >>> classify_url("https://auth0.openai.com/u/login", ["auth0.openai.com"], ["chatgpt.com"])
    <AuthState.LOGIN_REQUIRED: 'login_required'>
    >>> classify_url("https://chatgpt.com/", ["auth0.openai.com"], ["chatgpt.com"]) is None
    True
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

from scrollspine.browser.selectors import LOGIN_INDICATORS, SIDEBAR, find_first

if TYPE_CHECKING:
    from scrollspine.core.config import Settings
    from scrollspine.protocols.browser import BrowserSession

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    """Authentication states. Derived per check and never persisted."""

    AUTHENTICATED = "authenticated"
    LOGIN_REQUIRED = "login_required"
    SESSION_EXPIRED = "session_expired"
    UNKNOWN = "unknown"


def classify_url(
    url: str,
    login_markers: Sequence[str],
    domain_markers: Sequence[str],
) -> AuthState | None:
    """Decide from the URL alone, or return None if the DOM must be checked."""
    if any(marker in url for marker in login_markers):
        return AuthState.LOGIN_REQUIRED
    if not any(marker in url for marker in domain_markers):
        return AuthState.LOGIN_REQUIRED
    return None


async def detect_auth_state(session: BrowserSession, settings: Settings) -> AuthState:
    """Detect the authentication state of the current page.

    Each authenticated-UI selector is given ``element_wait_timeout`` to
    appear. Login markers are checked without waiting.
    """
    url = await session.current_url()
    state = classify_url(url, settings.login_url_markers, settings.target_domain_markers)
    if state is not None:
        logger.debug(f"Auth state from URL {url}: {state.value}")
        return state

    if await find_first(session, SIDEBAR, settings.element_wait_timeout) is not None:
        return AuthState.AUTHENTICATED

    if await find_first(session, LOGIN_INDICATORS, 0) is not None:
        return AuthState.LOGIN_REQUIRED

    return AuthState.UNKNOWN
