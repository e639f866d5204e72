"""Selector fallback chains and the helpers that resolve them.

The target DOM is undocumented and changes without notice, so every
element is described by an ordered chain of selectors. Chains are plain
data; ``locate`` tries each selector in turn and reports every selector it
tried when none matched.

Example:
    >>> from scrollspine.browser.selectors import SIDEBAR, SelectorChain
    >>> SIDEBAR.selectors[0]
    '[data-testid="sidebar"]'
    >>> chain = SelectorChain("menu", ("#menu", "nav"))
    >>> len(chain)
    2
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from scrollspine.core.exceptions import ElementNotFoundError, SessionDeadError

if TYPE_CHECKING:
    from scrollspine.protocols.browser import BrowserSession, Element

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectorChain:
    """An ordered list of selectors for one logical element."""

    description: str
    selectors: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.selectors:
            raise ValueError(f"Selector chain '{self.description}' is empty")

    def __len__(self) -> int:
        return len(self.selectors)

    def __iter__(self):
        return iter(self.selectors)


# --- Selector tables ---

SIDEBAR = SelectorChain(
    "sidebar",
    (
        '[data-testid="sidebar"]',
        "#sidebar",
        'nav[aria-label*="Chat"]',
        "nav",
    ),
)

SEE_MORE = SelectorChain(
    "see more button",
    (
        'text="See more"',
        'button:has-text("See more")',
        'div:has-text("See more")',
    ),
)

POPUP = SelectorChain(
    "item popup",
    (
        '[role="menu"]',
        "[data-radix-popper-content-wrapper]",
        'div[class*="popover"]',
        'div[class*="dropdown"]',
        'div[class*="menu"]',
    ),
)

LIST_CONTAINER = SelectorChain(
    "item list container",
    (
        '[data-testid="projects-list"]',
        '[role="list"]',
        ".projects-container",
    ),
)

ITEM = SelectorChain(
    "item link",
    (
        'a[href$="/project"]',
        'a[href*="g-p-"][href*="/project"]',
    ),
)

TOOLTIP = SelectorChain(
    "tooltip",
    (
        '[role="tooltip"]',
        ".tooltip",
        "[data-radix-popper-content-wrapper]",
    ),
)

LOGIN_INDICATORS = SelectorChain(
    "login indicator",
    (
        'text="Log in"',
        'text="Sign up"',
        'text="Welcome back"',
        'text="Get started"',
        '[data-testid="login-button"]',
        'button:has-text("Log in")',
        'button:has-text("Sign up")',
        'a:has-text("Log in")',
    ),
)


# --- Resolution helpers ---


async def find_first(
    session: BrowserSession,
    chain: SelectorChain,
    timeout: float,
    within: Element | None = None,
) -> Element | None:
    """Return the first visible element matched by any selector, or None.

    Each selector gets its own timeout. SessionDeadError propagates.
    """
    for selector in chain:
        try:
            element = await session.wait_visible(selector, timeout, within=within)
        except SessionDeadError:
            raise
        except Exception as e:
            logger.debug(f"Selector {selector!r} for {chain.description} failed: {e}")
            continue
        if element is not None:
            return element
    return None


async def locate(
    session: BrowserSession,
    chain: SelectorChain,
    timeout: float,
    within: Element | None = None,
) -> Element:
    """Like find_first, but a miss raises ElementNotFoundError.

    Raises:
        ElementNotFoundError: No selector in the chain matched.
    """
    element = await find_first(session, chain, timeout, within=within)
    if element is None:
        raise ElementNotFoundError(chain.description, chain.selectors)
    return element


async def locate_all(
    session: BrowserSession,
    chain: SelectorChain,
    within: Element | None = None,
) -> list[Element]:
    """Return the matches of the first selector that matches anything.

    An empty list is a valid answer (the panel may hold no items).
    """
    for selector in chain:
        try:
            elements = await session.query_all(selector, within=within)
        except SessionDeadError:
            raise
        except Exception as e:
            logger.debug(f"Selector {selector!r} for {chain.description} failed: {e}")
            continue
        if elements:
            return elements
    return []
