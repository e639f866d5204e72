"""Scroll a lazily-loading list until it stops growing.

The panel only materializes items as it is scrolled, and closes if the
cursor leaves it. Each iteration therefore hovers the container, scrolls,
waits for lazy loading, and recounts. The list is considered exhausted
after ``stability_threshold`` consecutive iterations without growth.

Example:
    >>> from scrollspine.scraper.scroller import ScrollConfig
    >>> config = ScrollConfig(stability_threshold=3, after_scroll_delay=0)
    >>> config.scroll_delta
    400
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from scrollspine.protocols.progress import NullProgressReporter, ProgressEvent, ProgressStage

if TYPE_CHECKING:
    from scrollspine.core.config import Settings
    from scrollspine.protocols.browser import BrowserSession, Element
    from scrollspine.protocols.progress import ProgressReporter

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class ScrollConfig:
    """Tuning for scroll_until_exhausted."""

    scroll_delta: int = 400
    after_scroll_delay: float = 1.0
    stability_threshold: int = 5
    max_iterations: int = 100

    def __post_init__(self) -> None:
        if self.stability_threshold < 1:
            raise ValueError("stability_threshold must be at least 1")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> ScrollConfig:
        return cls(
            scroll_delta=settings.scroll_delta,
            after_scroll_delay=settings.after_scroll_delay,
            stability_threshold=settings.stability_threshold,
            max_iterations=settings.max_scroll_iterations,
        )


@dataclass(frozen=True)
class ScrollOutcome:
    """Result of scrolling.

    Attributes:
        final_count: Items actually materialized when scrolling stopped.
        iterations: Scroll iterations performed.
        exhausted: True if growth stopped; False if the iteration cap hit first.
    """

    final_count: int
    iterations: int
    exhausted: bool


async def scroll_until_exhausted(
    session: BrowserSession,
    container: Element,
    count_items: Callable[[], Awaitable[int]],
    config: ScrollConfig | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
    progress: ProgressReporter | None = None,
) -> ScrollOutcome:
    """Scroll container until its item count is stable.

    Args:
        session: Browser session used for hover and scroll.
        container: The scrollable element.
        count_items: Returns the number of items currently materialized.
        config: Scroll tuning. Defaults to ScrollConfig().
        sleep: Awaitable sleep, injectable for tests.
        progress: Optional progress reporter.

    Returns:
        ScrollOutcome with the final materialized count. An initial count of
        zero returns immediately with zero iterations.
    """
    config = config or ScrollConfig()
    progress = progress or NullProgressReporter()

    previous = await count_items()
    logger.info(f"Scrolling to load all items ({previous} visible so far)...")
    if previous == 0:
        logger.info("No items found in panel")
        return ScrollOutcome(final_count=0, iterations=0, exhausted=True)

    stable = 0
    iterations = 0
    while stable < config.stability_threshold and iterations < config.max_iterations:
        iterations += 1

        await session.hover(container)
        await session.scroll(container, config.scroll_delta)
        await sleep(config.after_scroll_delay)

        current = await count_items()
        if current > previous:
            stable = 0
            logger.info(f"Found {current} items (+{current - previous} new)")
        else:
            stable += 1
            logger.debug(f"No growth at {current} items ({stable}/{config.stability_threshold})")
        previous = current

        progress.report(
            ProgressEvent(
                stage=ProgressStage.SCROLLING,
                message=f"{current} items loaded",
                current=current,
                metadata={"iteration": iterations, "stable": stable},
            )
        )

    exhausted = stable >= config.stability_threshold
    if exhausted:
        logger.info(f"Scroll complete: {previous} items materialized after {iterations} iteration(s)")
    else:
        logger.warning(
            f"Stopped scrolling at the {config.max_iterations}-iteration cap with {previous} items; "
            "the list may be incomplete"
        )
    return ScrollOutcome(final_count=previous, iterations=iterations, exhausted=exhausted)
