"""Protocol definitions - all extension points."""

from scrollspine.protocols.browser import BrowserSession, Element
from scrollspine.protocols.notification import (
    Notification,
    NotificationChannel,
    NotificationEvent,
    NotificationResult,
    Notifier,
    Severity,
)
from scrollspine.protocols.progress import (
    NullProgressReporter,
    ProgressEvent,
    ProgressReporter,
    ProgressStage,
)
from scrollspine.protocols.store import DurableStore

__all__ = [
    # Browser
    "BrowserSession",
    "Element",
    # Storage
    "DurableStore",
    # Notification
    "Notification",
    "NotificationChannel",
    "NotificationEvent",
    "NotificationResult",
    "Notifier",
    "Severity",
    # Progress
    "NullProgressReporter",
    "ProgressEvent",
    "ProgressReporter",
    "ProgressStage",
]
