"""Panel navigation, scrolling and item extraction."""

from scrollspine.scraper.extractor import (
    ExtractionSummary,
    extract_item,
    extract_items,
    parse_item_id,
    slug_label,
)
from scrollspine.scraper.navigator import ItemPanel, count_panel_items, navigate_home, open_item_panel
from scrollspine.scraper.scroller import ScrollConfig, ScrollOutcome, scroll_until_exhausted

__all__ = [
    # Navigation
    "ItemPanel",
    "count_panel_items",
    "navigate_home",
    "open_item_panel",
    # Scrolling
    "ScrollConfig",
    "ScrollOutcome",
    "scroll_until_exhausted",
    # Extraction
    "ExtractionSummary",
    "extract_item",
    "extract_items",
    "parse_item_id",
    "slug_label",
]
