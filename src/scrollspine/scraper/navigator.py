"""Reach the item panel.

The full list lives in a "See more" popup that stays open only while the
cursor is inside it. When the popup cannot be found the sidebar list is
used instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from scrollspine.browser.selectors import (
    ITEM,
    LIST_CONTAINER,
    POPUP,
    SEE_MORE,
    SIDEBAR,
    find_first,
    locate,
    locate_all,
)
from scrollspine.core.exceptions import BrowserError, SessionDeadError

if TYPE_CHECKING:
    from scrollspine.core.config import Settings
    from scrollspine.protocols.browser import BrowserSession, Element

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

SEE_MORE_TIMEOUT = 2.0
POPUP_TIMEOUT = 1.0
CONTAINER_TIMEOUT = 2.0


@dataclass(frozen=True)
class ItemPanel:
    """The scrollable element holding the items, and where it was found."""

    container: Element
    source: str  # "popup", "list" or "sidebar"


async def navigate_home(session: BrowserSession, settings: Settings, *, sleep: Sleep = asyncio.sleep) -> None:
    """Load the target page and let it settle."""
    logger.info(f"Navigating to {settings.target_url}...")
    await session.navigate(settings.target_url, settings.page_load_timeout)
    await sleep(settings.page_settle_delay)


async def count_panel_items(session: BrowserSession, panel: ItemPanel) -> int:
    """Number of item links currently materialized in the panel."""
    return len(await locate_all(session, ITEM, within=panel.container))


async def panel_items(session: BrowserSession, panel: ItemPanel) -> list[Element]:
    return await locate_all(session, ITEM, within=panel.container)


async def _open_popup(session: BrowserSession, settings: Settings, sleep: Sleep) -> Element | None:
    button = await find_first(session, SEE_MORE, SEE_MORE_TIMEOUT)
    if button is None:
        return None

    await session.click(button)
    logger.info('Clicked "See more" to open item popup')
    await sleep(settings.menu_animation_delay)

    for selector in POPUP:
        try:
            popup = await session.wait_visible(selector, POPUP_TIMEOUT)
        except SessionDeadError:
            raise
        except BrowserError as e:
            logger.debug(f"Popup selector {selector!r} failed: {e}")
            continue
        if popup is None:
            continue
        visible = await locate_all(session, ITEM, within=popup)
        if visible:
            logger.info(f"Found item popup with {len(visible)} visible items")
            return popup
    return None


async def open_item_panel(
    session: BrowserSession,
    settings: Settings,
    *,
    sleep: Sleep = asyncio.sleep,
) -> ItemPanel:
    """Find the container to scroll and extract from.

    Raises:
        ElementNotFoundError: The sidebar never appeared. Without it the
            panel cannot be reached, so the pass fails.
    """
    sidebar = await locate(session, SIDEBAR, settings.element_wait_timeout)
    logger.info("Sidebar loaded")

    popup = await _open_popup(session, settings, sleep)
    if popup is not None:
        return ItemPanel(container=popup, source="popup")

    logger.info('Could not open "See more" popup, falling back to sidebar list')
    container = await find_first(session, LIST_CONTAINER, CONTAINER_TIMEOUT)
    if container is not None:
        return ItemPanel(container=container, source="list")
    return ItemPanel(container=sidebar, source="sidebar")
