"""Custom exceptions.

ScrollSpine uses a hierarchy of exceptions so callers can tell per-item
problems from pass-level and process-level failures:

Example:
    >>> from scrollspine.core.exceptions import AuthRecoveryError, ScrollSpineError
    >>> isinstance(AuthRecoveryError("login timed out"), ScrollSpineError)
    True
    >>> try:
    ...     raise AuthRecoveryError("login timed out")
    ... except ScrollSpineError as e:
    ...     print(f"Caught: {type(e).__name__}")
    Caught: AuthRecoveryError
"""

from __future__ import annotations


class ScrollSpineError(Exception):
    """Base exception for ScrollSpine.

    Example:
        >>> from scrollspine.core.exceptions import ScrollSpineError
        >>> str(ScrollSpineError("something went wrong"))
        'something went wrong'
    """


class ConfigurationError(ScrollSpineError):
    """Configuration is invalid.

    Example:
        >>> from scrollspine.core.exceptions import ConfigurationError
        >>> raise ConfigurationError("interval too short")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        ConfigurationError: interval too short
    """


# --- Browser ---


class BrowserError(ScrollSpineError):
    """A browser interaction failed."""


class ElementNotFoundError(BrowserError):
    """Every selector in a fallback chain was tried without a match.

    Non-fatal for a single item; fatal when it blocks reaching the list
    container.

    Example:
        >>> from scrollspine.core.exceptions import ElementNotFoundError
        >>> err = ElementNotFoundError("sidebar", ["#sidebar", "nav"])
        >>> err.selectors
        ['#sidebar', 'nav']
        >>> str(err)
        'Could not find sidebar. Tried selectors: #sidebar, nav'
    """

    def __init__(self, description: str, selectors: list[str] | tuple[str, ...]) -> None:
        self.description = description
        self.selectors = list(selectors)
        super().__init__(
            f"Could not find {description}. Tried selectors: {', '.join(self.selectors)}"
        )


class NavigationError(BrowserError):
    """The page failed to reach the target location."""


class SessionDeadError(BrowserError):
    """The underlying browser session is unusable and must be relaunched."""


class ExtractionError(ScrollSpineError):
    """A single item could not be extracted. Counted, never fatal to a pass."""


# --- Authentication ---


class AuthRecoveryError(ScrollSpineError):
    """The bounded-timeout login wait expired without reaching an authenticated state.

    Example:
        >>> from scrollspine.core.exceptions import AuthRecoveryError
        >>> err = AuthRecoveryError("no login", elapsed=301.5)
        >>> err.elapsed
        301.5
    """

    def __init__(self, message: str, *, elapsed: float | None = None) -> None:
        self.elapsed = elapsed
        super().__init__(message)


# --- Storage ---


class StorageError(ScrollSpineError):
    """Storage operation failed."""


class StorageFlushError(StorageError):
    """A backend write failed. The caller keeps its buffer for the next attempt.

    Example:
        >>> from scrollspine.core.exceptions import StorageFlushError
        >>> err = StorageFlushError("supabase", "connection refused", pending=12)
        >>> err.pending
        12
        >>> str(err)
        'supabase: flush of 12 record(s) failed: connection refused'
    """

    def __init__(self, backend: str, reason: str, *, pending: int = 0) -> None:
        self.backend = backend
        self.reason = reason
        self.pending = pending
        super().__init__(f"{backend}: flush of {pending} record(s) failed: {reason}")


class StoreUnavailableError(StorageError):
    """A configured backend could not be initialized. Process-fatal."""

    def __init__(self, backend: str, reason: str) -> None:
        self.backend = backend
        self.reason = reason
        super().__init__(f"Storage backend '{backend}' is unavailable: {reason}")
