"""Extract id and full label from each materialized item.

Ids come from the item link with a fixed rule; labels are taken from the
most complete source available, because the visible text is truncated.

Example:
    >>> from scrollspine.scraper.extractor import parse_item_id, slug_label
    >>> parse_item_id("/g/g-p-6790ab12-tax-returns/project")
    'g-p-6790ab12-tax-returns'
    >>> parse_item_id("/c/12345") is None
    True
    >>> slug_label("g-p-6790ab12-tax-returns")
    'tax returns'
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from scrollspine.browser.selectors import TOOLTIP, find_first
from scrollspine.core.exceptions import BrowserError, ExtractionError, SessionDeadError
from scrollspine.models.item import ItemRecord
from scrollspine.protocols.progress import NullProgressReporter, ProgressEvent, ProgressStage

if TYPE_CHECKING:
    from scrollspine.protocols.browser import BrowserSession, Element
    from scrollspine.protocols.progress import ProgressReporter

logger = logging.getLogger(__name__)

ITEM_ID_PATTERN = re.compile(r"/(?:g|project)/([a-zA-Z0-9_-]+)")
_SLUG_PREFIX = re.compile(r"^g-p-[0-9a-fA-F]+-?")
_TRAILING_ELLIPSIS = re.compile(r"(?:…|\.{3})\s*$")

OnItem = Callable[[ItemRecord], Awaitable[None]]


def parse_item_id(href: str | None) -> str | None:
    """Derive the item id from a link, or None if the link does not match."""
    if not href:
        return None
    match = ITEM_ID_PATTERN.search(href)
    return match.group(1) if match else None


def slug_label(item_id: str) -> str | None:
    """Human-readable label recovered from the id slug, or None if there is none.

    Example:
        >>> from scrollspine.scraper.extractor import slug_label
        >>> slug_label("g-p-abc123") is None
        True
        >>> slug_label("weekly_review")
        'weekly review'
    """
    slug = _SLUG_PREFIX.sub("", item_id)
    label = re.sub(r"[-_]+", " ", slug).strip()
    return label or None


def strip_ellipsis(text: str) -> str:
    """Remove a trailing truncation ellipsis.

    Example:
        >>> from scrollspine.scraper.extractor import strip_ellipsis
        >>> strip_ellipsis("Quarterly planning for…")
        'Quarterly planning for'
    """
    return _TRAILING_ELLIPSIS.sub("", text).strip()


@dataclass
class ExtractionSummary:
    """Counts from one extraction walk."""

    extracted: int = 0
    failed: int = 0
    observed_ids: set[str] = field(default_factory=set)
    errors: list[str] = field(default_factory=list)


async def resolve_label(
    session: BrowserSession,
    element: Element,
    item_id: str,
    *,
    tooltip_timeout: float,
) -> str | None:
    """Pick the label for an item.

    Precedence: ``title`` attribute, then hover tooltip, then visible text
    without its ellipsis, then the id slug.
    """
    title = await session.read_attribute(element, "title")
    if title and title.strip():
        return title.strip()

    tooltip = await find_first(session, TOOLTIP, tooltip_timeout)
    if tooltip is not None:
        text = (await session.read_visible_text(tooltip)).strip()
        if text:
            return text

    visible = strip_ellipsis(await session.read_visible_text(element))
    if visible:
        return visible

    return slug_label(item_id)


async def extract_item(
    session: BrowserSession,
    element: Element,
    *,
    tooltip_timeout: float,
    run_id: str | None = None,
) -> ItemRecord:
    """Extract one item.

    Raises:
        ExtractionError: The id or label could not be determined.
        SessionDeadError: The browser session died.
    """
    await session.hover(element)

    href = await session.read_attribute(element, "href")
    item_id = parse_item_id(href)
    if item_id is None:
        raise ExtractionError(f"Could not extract item id from href: {href}")

    label = await resolve_label(session, element, item_id, tooltip_timeout=tooltip_timeout)
    if not label:
        raise ExtractionError(f"Could not extract label for item {item_id}")

    return ItemRecord.observed(item_id, label, run_id=run_id)


async def extract_items(
    session: BrowserSession,
    items: list[Element],
    on_item: OnItem,
    *,
    tooltip_timeout: float = 2.0,
    between_hovers_delay: float = 0.1,
    run_id: str | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    progress: ProgressReporter | None = None,
) -> ExtractionSummary:
    """Walk every materialized item and hand each record to on_item.

    Per-item failures are counted and logged. Only SessionDeadError escapes,
    because no later item can succeed without a live session.
    """
    progress = progress or NullProgressReporter()
    summary = ExtractionSummary()
    total = len(items)
    logger.info(f"Extracting data from {total} items...")

    for index, element in enumerate(items, start=1):
        try:
            record = await extract_item(
                session, element, tooltip_timeout=tooltip_timeout, run_id=run_id
            )
        except SessionDeadError:
            raise
        except (ExtractionError, BrowserError) as e:
            summary.failed += 1
            summary.errors.append(str(e))
            logger.warning(f"Failed to extract item {index}: {e}")
        else:
            await on_item(record)
            if record.id not in summary.observed_ids:
                summary.observed_ids.add(record.id)
                summary.extracted += 1
            if summary.extracted % 10 == 0:
                logger.info(f"Extracted {summary.extracted}/{total} items")
                progress.report(
                    ProgressEvent(
                        stage=ProgressStage.EXTRACTING,
                        message=f"Extracted {summary.extracted}/{total} items",
                        current=summary.extracted,
                        total=total,
                    )
                )

        await sleep(between_hovers_delay)

    logger.info(f"Extraction complete: {summary.extracted} extracted, {summary.failed} failed")
    return summary
