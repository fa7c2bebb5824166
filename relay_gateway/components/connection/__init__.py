from relay_gateway.components.connection.relay_connection import (
    ConnectionState,
    RelayConnection,
    is_ws_connected,
)

__all__ = [
    "ConnectionState",
    "RelayConnection",
    "is_ws_connected",
]
