"""
Relay Gateway Constants.

Centralized close codes and wire literals.
The peer-authored and deliver-to-peer message types are configurable
(FROM_SERVER_TYPE / TO_CLIENT_TYPE); the observer literals below are fixed.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MSG_OBSERVER_IDENTIFY",
    "MSG_DASHBOARD_UPDATE",
    "UUID_PATH_PREFIX",
    "ANONYMOUS_PREFIX",
    "ANONYMOUS_RANDOM_BYTES",
    "ROOT_READY_TEXT",
    "INTERNAL_ERROR_TEXT",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    """

    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down
    SERVER_ERROR = 1011  # Unexpected server error during admission


class WSConstants:
    """Operational constants of the gateway."""

    # Polling step while waiting for uvicorn to report started
    STARTUP_POLL_INTERVAL: Final[float] = 0.01

    # Maximum characters of user data copied into a log line
    LOG_PREVIEW_LENGTH: Final[int] = 100


# Sent by a client to register as an observer (dashboard)
MSG_OBSERVER_IDENTIFY: Final[str] = "identify_dashboard"

# Registry snapshot pushed to observers
MSG_DASHBOARD_UPDATE: Final[str] = "dashboard_update"

# Identity resolution
UUID_PATH_PREFIX: Final[str] = "/uuid/"
ANONYMOUS_PREFIX: Final[str] = "anon-"
ANONYMOUS_RANDOM_BYTES: Final[int] = 10

# HTTP bodies
ROOT_READY_TEXT: Final[str] = "WebSocket server is running"
INTERNAL_ERROR_TEXT: Final[str] = "Internal Server Error"
