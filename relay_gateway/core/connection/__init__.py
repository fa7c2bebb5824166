"""
Connection bookkeeping: the registry and the observer broadcaster.
"""

from relay_gateway.core.connection.registry import ConnectionRegistry, RegistrySnapshot
from relay_gateway.core.connection.broadcaster import ObserverBroadcaster

__all__ = [
    "ConnectionRegistry",
    "RegistrySnapshot",
    "ObserverBroadcaster",
]
