"""Testing utilities.

Fakes for driving passes without a browser, a network or wall-clock time.

Example:
    >>> import asyncio
    >>> from scrollspine.testing import FakeBrowserSession, FakeClock
    >>> session = FakeBrowserSession.with_items([("a1", "Alpha")])
    >>> clock = FakeClock()
    >>> asyncio.run(clock.sleep(2.5))
    >>> clock.now, clock.sleeps
    (2.5, [2.5])
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from scrollspine.browser.selectors import ITEM, LIST_CONTAINER, SIDEBAR, TOOLTIP
from scrollspine.core.exceptions import BrowserError, NavigationError, SessionDeadError, StorageFlushError
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import CleanupResult, Run, RunStats
from scrollspine.protocols.notification import NotificationEvent, NotificationResult
from scrollspine.storage.memory import MemoryStore

HOME_URL = "https://chatgpt.com/"
LOGIN_URL = "https://auth0.openai.com/u/login"


@dataclass
class FakeClock:
    """Manually advanced clock with an awaitable sleep.

    ``sleep`` advances the clock instead of waiting, so a test that sleeps
    five minutes finishes immediately. Pass ``clock`` where a monotonic
    clock is expected and ``utc`` where a datetime clock is expected.

    Example:
        >>> from scrollspine.testing import FakeClock
        >>> clock = FakeClock()
        >>> clock.advance(90)
        >>> clock(), clock.utc().minute
        (90.0, 1)
    """

    now: float = 0.0
    start: datetime = field(default_factory=lambda: datetime(2026, 1, 1, tzinfo=UTC))
    sleeps: list[float] = field(default_factory=list)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def utc(self) -> datetime:
        return self.start + timedelta(seconds=self.now)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@dataclass(eq=False)
class FakeElement:
    """An element handle understood by FakeBrowserSession."""

    name: str
    attributes: dict[str, str] = field(default_factory=dict)
    text: str = ""
    tooltip: str | None = None
    fail_hover: bool = False

    def __repr__(self) -> str:
        return f"FakeElement({self.name!r})"


def item_element(item_id: str, label: str, *, title: bool = True, tooltip: str | None = None) -> FakeElement:
    """An item link the extractor can read.

    The visible text is the label truncated with an ellipsis, as the
    real panel shows it.
    """
    attributes = {"href": f"/g/{item_id}/project"}
    if title:
        attributes["title"] = label
    text = label if len(label) <= 20 else label[:20] + "…"
    return FakeElement(name=item_id, attributes=attributes, text=text, tooltip=tooltip)


@dataclass
class FakeBrowserSession:
    """Scriptable BrowserSession.

    ``visible`` maps selectors to the element ``wait_visible`` returns.
    Items are returned for the first ITEM selector; how many are
    materialized is driven by ``counts``: ``counts[0]`` before any scroll,
    ``counts[k]`` after k scrolls, the last value repeating.

    Args:
        url: What current_url() returns.
        reload_url: If set, reload() switches to this URL.
        visible: Selector to element map for wait_visible.
        items: Item elements in panel order.
        counts: Materialized item counts per scroll step.
        dead: Every call raises SessionDeadError.

    Example:
        >>> import asyncio
        >>> from scrollspine.testing import FakeBrowserSession
        >>> session = FakeBrowserSession.with_items([("a1", "Alpha"), ("b2", "Beta")], counts=[1, 2])
        >>> async def demo():
        ...     panel = session.visible['[data-testid="projects-list"]']
        ...     before = len(await session.query_all('a[href$="/project"]', within=panel))
        ...     await session.scroll(panel, 400)
        ...     after = len(await session.query_all('a[href$="/project"]', within=panel))
        ...     return before, after
        >>> asyncio.run(demo())
        (1, 2)
    """

    url: str = HOME_URL
    reload_url: str | None = None
    visible: dict[str, FakeElement] = field(default_factory=dict)
    items: list[FakeElement] = field(default_factory=list)
    counts: list[int] = field(default_factory=list)
    dead: bool = False
    navigate_error: str | None = None
    calls: list[str] = field(default_factory=list)
    hovered: list[FakeElement] = field(default_factory=list)
    scrolls: int = 0
    foreground: bool = False
    closed: bool = False

    @classmethod
    def with_items(
        cls,
        items: Sequence[tuple[str, str]],
        *,
        counts: Sequence[int] | None = None,
        **kwargs: Any,
    ) -> FakeBrowserSession:
        """A logged-in session whose sidebar list holds the given (id, label) items."""
        elements = [item_element(item_id, label) for item_id, label in items]
        visible = {
            SIDEBAR.selectors[0]: FakeElement("sidebar"),
            LIST_CONTAINER.selectors[0]: FakeElement("list"),
        }
        visible.update(kwargs.pop("visible", {}))
        return cls(
            visible=visible,
            items=elements,
            counts=list(counts) if counts is not None else [len(elements)],
            **kwargs,
        )

    @property
    def materialized(self) -> int:
        if not self.counts:
            return len(self.items)
        count = self.counts[min(self.scrolls, len(self.counts) - 1)]
        return min(count, len(self.items))

    def log_in(self) -> None:
        """Show the authenticated page from now on."""
        self.url = HOME_URL
        self.visible.setdefault(SIDEBAR.selectors[0], FakeElement("sidebar"))

    def log_out(self) -> None:
        """Show the login page from now on."""
        self.url = LOGIN_URL

    def _check(self, call: str) -> None:
        self.calls.append(call)
        if self.dead or self.closed:
            raise SessionDeadError(f"Target page, context or browser has been closed ({call})")

    async def navigate(self, url: str, timeout: float) -> None:
        self._check("navigate")
        if self.navigate_error is not None:
            raise NavigationError(self.navigate_error)
        if self.url != LOGIN_URL:
            self.url = url

    async def reload(self, timeout: float) -> None:
        self._check("reload")
        if self.reload_url is not None:
            self.url = self.reload_url

    async def current_url(self) -> str:
        self._check("current_url")
        return self.url

    async def query_all(self, selector: str, within: Any = None) -> list[Any]:
        self._check("query_all")
        if selector == ITEM.selectors[0]:
            return list(self.items[: self.materialized])
        element = self.visible.get(selector)
        return [element] if element is not None else []

    async def wait_visible(self, selector: str, timeout: float, within: Any = None) -> Any:
        self._check("wait_visible")
        if selector in TOOLTIP.selectors:
            last = self.hovered[-1] if self.hovered else None
            if selector == TOOLTIP.selectors[0] and last is not None and last.tooltip:
                return FakeElement("tooltip", text=last.tooltip)
            return None
        return self.visible.get(selector)

    async def click(self, element: Any) -> None:
        self._check("click")

    async def hover(self, element: Any) -> None:
        self._check("hover")
        if element.fail_hover:
            raise BrowserError(f"Element {element.name} is not attached to the DOM")
        self.hovered.append(element)

    async def scroll(self, container: Any, delta: int) -> None:
        self._check("scroll")
        self.scrolls += 1

    async def read_attribute(self, element: Any, name: str) -> str | None:
        self._check("read_attribute")
        return element.attributes.get(name)

    async def read_visible_text(self, element: Any) -> str:
        self._check("read_visible_text")
        return element.text

    async def bring_to_foreground(self) -> None:
        self._check("bring_to_foreground")
        self.foreground = True

    async def is_alive(self) -> bool:
        return not (self.dead or self.closed)

    async def close(self) -> None:
        self.closed = True


class FlakyStore(MemoryStore):
    """MemoryStore whose upserts fail on demand.

    ``errors`` maps an operation name (``upsert``, ``start_run``,
    ``mark_run_completed``, ``mark_run_failed``, ``atomic_cleanup``) to an
    exception raised on every call, for backends that fail outside the
    storage error family.

    Example:
        >>> import asyncio
        >>> from scrollspine.models import ItemRecord
        >>> from scrollspine.testing import FlakyStore
        >>> store = FlakyStore(failures=1)
        >>> async def demo():
        ...     try:
        ...         await store.upsert([ItemRecord.observed("a", "Alpha")])
        ...     except Exception as e:
        ...         first = type(e).__name__
        ...     await store.upsert([ItemRecord.observed("a", "Alpha")])
        ...     return first, await store.list_existing_ids()
        >>> asyncio.run(demo())
        ('StorageFlushError', {'a'})
    """

    def __init__(
        self,
        name: str = "flaky",
        *,
        failures: int = 0,
        errors: dict[str, Exception] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(name, **kwargs)
        self.failures = failures
        self.failing = False
        self.errors = dict(errors or {})
        self.upsert_calls = 0

    def _raise_if_broken(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]

    async def upsert(self, rows: list[ItemRecord]) -> int:
        self.upsert_calls += 1
        self._raise_if_broken("upsert")
        if self.failing or self.failures > 0:
            self.failures = max(0, self.failures - 1)
            raise StorageFlushError(self.name, "connection reset", pending=len(rows))
        return await super().upsert(rows)

    async def start_run(self, run_id: str | None = None) -> Run:
        self._raise_if_broken("start_run")
        return await super().start_run(run_id)

    async def mark_run_completed(self, run_id: str, stats: RunStats) -> Run:
        self._raise_if_broken("mark_run_completed")
        return await super().mark_run_completed(run_id, stats)

    async def mark_run_failed(self, run_id: str, error: str) -> Run:
        self._raise_if_broken("mark_run_failed")
        return await super().mark_run_failed(run_id, error)

    async def atomic_cleanup(self, keep_count: int) -> CleanupResult:
        self._raise_if_broken("atomic_cleanup")
        return await super().atomic_cleanup(keep_count)


@dataclass
class RecordingNotifier:
    """Notifier that records every event and always reports success."""

    events: list[tuple[NotificationEvent, str]] = field(default_factory=list)

    async def notify(
        self,
        event: NotificationEvent,
        message: str,
        *,
        data: dict[str, Any] | None = None,
    ) -> NotificationResult:
        self.events.append((event, message))
        return NotificationResult(sent=True, channels=["recording"])

    def kinds(self) -> list[NotificationEvent]:
        return [event for event, _ in self.events]
