"""Browser session protocol.

Defines the narrow set of page capabilities the enumeration engine needs.
Element handles are opaque: a session only has to accept back the handles
it returned.

Example:
    >>> from scrollspine.protocols.browser import BrowserSession
    >>> hasattr(BrowserSession, "wait_visible")
    True
    >>> hasattr(BrowserSession, "is_alive")
    True
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

Element = Any


@runtime_checkable
class BrowserSession(Protocol):
    """A controllable page in a running browser.

    Implementations raise SessionDeadError when the page or browser is
    gone, and NavigationError when a navigation does not complete.

    See Also:
        scrollspine.browser.playwright.PlaywrightSession: Playwright implementation
        scrollspine.testing.FakeBrowserSession: Scriptable fake for tests
    """

    # --- Navigation ---

    async def navigate(self, url: str, timeout: float) -> None:
        """Load url and wait for the DOM to be ready."""
        ...

    async def reload(self, timeout: float) -> None:
        """Reload the current page."""
        ...

    async def current_url(self) -> str:
        """URL of the page currently shown."""
        ...

    # --- Elements ---

    async def query_all(self, selector: str, within: Element | None = None) -> list[Element]:
        """All elements matching selector, optionally under within."""
        ...

    async def wait_visible(
        self,
        selector: str,
        timeout: float,
        within: Element | None = None,
    ) -> Element | None:
        """First visible match within timeout seconds, or None."""
        ...

    async def click(self, element: Element) -> None:
        ...

    async def hover(self, element: Element) -> None:
        ...

    async def scroll(self, container: Element, delta: int) -> None:
        """Scroll container vertically by delta pixels."""
        ...

    async def read_attribute(self, element: Element, name: str) -> str | None:
        ...

    async def read_visible_text(self, element: Element) -> str:
        ...

    # --- Lifecycle ---

    async def bring_to_foreground(self) -> None:
        """Make the window visible so a human can intervene."""
        ...

    async def is_alive(self) -> bool:
        """True if the page still responds to evaluation."""
        ...

    async def close(self) -> None:
        """Release the page and its browser context."""
        ...
