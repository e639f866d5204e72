"""Authentication state detection and recovery."""

from scrollspine.auth.detector import AuthState, classify_url, detect_auth_state
from scrollspine.auth.recovery import AuthGate

__all__ = [
    "AuthGate",
    "AuthState",
    "classify_url",
    "detect_auth_state",
]
