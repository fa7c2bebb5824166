"""
Core constants and helpers shared by all gateway components.
"""

from relay_gateway.components.core.constants import (
    MSG_DASHBOARD_UPDATE,
    MSG_OBSERVER_IDENTIFY,
    WSCloseCode,
    WSConstants,
)
from relay_gateway.components.core.context import sanitize_log_data

__all__ = [
    "MSG_DASHBOARD_UPDATE",
    "MSG_OBSERVER_IDENTIFY",
    "WSCloseCode",
    "WSConstants",
    "sanitize_log_data",
]
