"""
WebSocket endpoint components.
"""

from relay_gateway.components.endpoints.relay import RelayEndpoint

__all__ = [
    "RelayEndpoint",
]
