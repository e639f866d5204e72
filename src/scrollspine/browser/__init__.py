"""Browser access: selector chains, session lease, Playwright session."""

from scrollspine.browser.lease import SessionLease
from scrollspine.browser.selectors import SelectorChain, find_first, locate, locate_all

__all__ = [
    "SelectorChain",
    "SessionLease",
    "find_first",
    "locate",
    "locate_all",
]
