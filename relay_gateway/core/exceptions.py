"""
Gateway exceptions.

HTTP-facing errors use FastAPI's HTTPException; these cover the
connection registry and the server lifecycle.
"""

from __future__ import annotations


class RelayGatewayError(Exception):
    """Base class for relay gateway errors."""


class ConnectionAlreadyRegisteredError(RelayGatewayError):
    """A connection was registered twice."""

    def __init__(self, identity: str) -> None:
        super().__init__(f"Connection for identity {identity!r} is already registered")
        self.identity = identity


class RegistryClosedError(RelayGatewayError):
    """The registry is draining for shutdown and admits no new connections."""

    def __init__(self) -> None:
        super().__init__("Registry is draining, connection refused")


class LifecycleError(RelayGatewayError):
    """Invalid lifecycle transition (e.g. start() while running)."""


class ListenerBindError(LifecycleError):
    """The listening socket could not be bound."""

    def __init__(self, host: str, port: int, reason: str) -> None:
        super().__init__(f"Could not bind {host}:{port}: {reason}")
        self.host = host
        self.port = port
        self.reason = reason
