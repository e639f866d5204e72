"""Playwright-backed browser session.

Wraps a persistent Chromium context so cookies survive between runs.
Element handles are Playwright ``Locator`` objects. Playwright errors are
translated into the ScrollSpine taxonomy: a closed page or browser becomes
SessionDeadError, a failed navigation becomes NavigationError.

Example:
    >>> from scrollspine.browser.playwright import is_dead_session_error
    >>> is_dead_session_error(Exception("Target page, context or browser has been closed"))
    True
    >>> is_dead_session_error(Exception("Timeout 5000ms exceeded"))
    False
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from scrollspine.core.exceptions import BrowserError, NavigationError, SessionDeadError

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Locator, Page, Playwright

    from scrollspine.core.config import Settings

logger = logging.getLogger(__name__)

_DEAD_SESSION_MARKERS = (
    "target page",
    "target closed",
    "has been closed",
    "browser has disconnected",
    "connection closed",
)


def is_dead_session_error(error: BaseException) -> bool:
    """True if a Playwright error means the page or browser is gone."""
    message = str(error).lower()
    return any(marker in message for marker in _DEAD_SESSION_MARKERS)


def _ms(seconds: float) -> float:
    return seconds * 1000


class PlaywrightSession:
    """BrowserSession implementation over a Playwright page.

    Example:
        >>> from scrollspine.browser.playwright import PlaywrightSession
        >>> PlaywrightSession.__name__
        'PlaywrightSession'
    """

    def __init__(
        self,
        page: Page,
        context: BrowserContext | None = None,
        playwright: Playwright | None = None,
        *,
        headless: bool = True,
    ) -> None:
        self._page = page
        self._context = context
        self._playwright = playwright
        self.headless = headless
        self._closed = False

    def _translate(self, error: PlaywrightError, action: str) -> BrowserError:
        if self._closed or is_dead_session_error(error):
            return SessionDeadError(f"Browser session is no longer usable ({action}): {error}")
        return BrowserError(f"{action} failed: {error}")

    # --- Navigation ---

    async def navigate(self, url: str, timeout: float) -> None:
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out loading {url} after {timeout:.0f}s") from e
        except PlaywrightError as e:
            translated = self._translate(e, f"navigate to {url}")
            if isinstance(translated, SessionDeadError):
                raise translated from e
            raise NavigationError(f"Could not load {url}: {e}") from e

    async def reload(self, timeout: float) -> None:
        try:
            await self._page.reload(wait_until="domcontentloaded", timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out reloading after {timeout:.0f}s") from e
        except PlaywrightError as e:
            raise self._translate(e, "reload") from e

    async def current_url(self) -> str:
        if self._closed or self._page.is_closed():
            raise SessionDeadError("Browser session is no longer usable (page closed)")
        return self._page.url

    # --- Elements ---

    async def query_all(self, selector: str, within: Locator | None = None) -> list[Locator]:
        root = within if within is not None else self._page
        try:
            return await root.locator(selector).all()
        except PlaywrightError as e:
            raise self._translate(e, f"query {selector!r}") from e

    async def wait_visible(
        self,
        selector: str,
        timeout: float,
        within: Locator | None = None,
    ) -> Locator | None:
        root = within if within is not None else self._page
        locator = root.locator(selector).first
        try:
            if timeout <= 0:
                # Playwright treats a zero timeout as "wait forever".
                return locator if await locator.is_visible() else None
            await locator.wait_for(state="visible", timeout=_ms(timeout))
        except PlaywrightTimeoutError:
            return None
        except PlaywrightError as e:
            raise self._translate(e, f"wait for {selector!r}") from e
        return locator

    async def click(self, element: Locator) -> None:
        try:
            await element.click()
        except PlaywrightError as e:
            raise self._translate(e, "click") from e

    async def hover(self, element: Locator) -> None:
        try:
            await element.hover()
        except PlaywrightError as e:
            raise self._translate(e, "hover") from e

    async def scroll(self, container: Locator, delta: int) -> None:
        # The wheel event goes to whatever is under the cursor, so the
        # container must be hovered first.
        try:
            await container.hover()
            await self._page.mouse.wheel(0, delta)
        except PlaywrightError as e:
            raise self._translate(e, "scroll") from e

    async def read_attribute(self, element: Locator, name: str) -> str | None:
        try:
            return await element.get_attribute(name)
        except PlaywrightError as e:
            raise self._translate(e, f"read attribute {name!r}") from e

    async def read_visible_text(self, element: Locator) -> str:
        try:
            return (await element.inner_text()).strip()
        except PlaywrightError as e:
            raise self._translate(e, "read text") from e

    # --- Lifecycle ---

    async def bring_to_foreground(self) -> None:
        if self.headless:
            logger.warning("Browser is headless; relaunch with --headful to log in interactively")
        try:
            await self._page.bring_to_front()
        except PlaywrightError as e:
            raise self._translate(e, "bring to front") from e

    async def is_alive(self) -> bool:
        if self._closed or self._page.is_closed():
            return False
        try:
            await self._page.evaluate("() => true")
        except PlaywrightError:
            return False
        return True

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._context is not None:
                await self._context.close()
        except PlaywrightError as e:
            logger.debug(f"Ignoring error while closing browser context: {e}")
        finally:
            if self._playwright is not None:
                await self._playwright.stop()


def has_existing_session(user_data_dir: Path) -> bool:
    """True if the persistent profile already holds cookies from a login.

    Example:
        >>> from pathlib import Path
        >>> from scrollspine.browser.playwright import has_existing_session
        >>> has_existing_session(Path("/nonexistent/profile"))
        False
    """
    return (user_data_dir / "Default" / "Cookies").exists()


async def launch_session(settings: Settings, *, force_headful: bool = False) -> PlaywrightSession:
    """Launch Chromium with the persistent profile and return its first page.

    The browser runs headful when forced, when settings ask for it, or when
    no previous login exists (so a human can log in).
    """
    if force_headful or settings.headful:
        headless = False
        logger.info("Launching browser in headful mode (forced)")
    elif not has_existing_session(settings.user_data_dir):
        headless = False
        logger.info("First run detected - launching browser for manual login")
    else:
        headless = True
        logger.info("Using existing session - launching in headless mode")

    settings.user_data_dir.mkdir(parents=True, exist_ok=True)

    playwright = await async_playwright().start()
    try:
        context = await playwright.chromium.launch_persistent_context(
            str(settings.user_data_dir),
            headless=headless,
            viewport={"width": settings.viewport_width, "height": settings.viewport_height},
            args=["--disable-blink-features=AutomationControlled"],
        )
    except PlaywrightError as e:
        await playwright.stop()
        raise BrowserError(f"Could not launch browser: {e}") from e

    page = context.pages[0] if context.pages else await context.new_page()
    return PlaywrightSession(page, context, playwright, headless=headless)
