"""Core configuration and utilities."""

from scrollspine.core.cancellation import CancellationToken, install_signal_handlers
from scrollspine.core.config import Settings, get_settings
from scrollspine.core.logging import configure_logging

__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    # Lifecycle
    "CancellationToken",
    "install_signal_handlers",
    # Logging
    "configure_logging",
]
