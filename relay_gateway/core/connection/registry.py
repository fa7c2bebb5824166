"""
Connection Registry.

Single source of truth for which connections are live and under which
identity. Owned by the application (one instance per app, injected into
the router, broadcaster and lifecycle controller).

Mutations run synchronously on the event loop thread, so a snapshot can
never observe a half-applied register/unregister. Listeners are invoked
after the mutation completes, which keeps every observer update causally
consistent with the change that triggered it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from relay_gateway.core.exceptions import (
    ConnectionAlreadyRegisteredError,
    RegistryClosedError,
)
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from relay_gateway.components.connection.relay_connection import RelayConnection

logger = get_logger(__name__)

RegistryListener = Callable[[], Any]


@dataclass(frozen=True)
class RegistrySnapshot:
    """Point-in-time view of the registry."""

    count: int
    identities: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "clients": list(self.identities)}


class ConnectionRegistry:
    """
    Maps live connections to their identities.

    Identities may repeat: two connections opened with the same UUID are
    two independent entries.
    """

    def __init__(self) -> None:
        self._connections: dict["RelayConnection", str] = {}
        self._listeners: list[RegistryListener] = []
        self._draining = False

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        return connection in self._connections

    @property
    def is_draining(self) -> bool:
        return self._draining

    def subscribe(self, listener: RegistryListener) -> None:
        """Call ``listener()`` after every register/unregister."""
        self._listeners.append(listener)

    # =========================================================================
    # Mutations
    # =========================================================================

    def register(self, connection: "RelayConnection") -> None:
        """
        Admit a connection under its identity.

        Raises:
            RegistryClosedError: The registry is draining for shutdown.
            ConnectionAlreadyRegisteredError: The connection is already present.
        """
        if self._draining:
            raise RegistryClosedError()
        if connection in self._connections:
            raise ConnectionAlreadyRegisteredError(connection.identity)

        self._connections[connection] = connection.identity
        logger.info(
            "Client connected",
            identity=connection.identity,
            total_connections=len(self._connections),
        )
        self._notify()

    def unregister(self, connection: "RelayConnection") -> bool:
        """
        Remove a connection. Returns False (and notifies nobody) if it was
        not registered, which makes double-close harmless.
        """
        identity = self._connections.pop(connection, None)
        if identity is None:
            return False

        logger.info(
            "Client disconnected",
            identity=identity,
            total_connections=len(self._connections),
        )
        self._notify()
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error("Registry listener failed", error=str(e), exc_info=True)

    # =========================================================================
    # Reads
    # =========================================================================

    def snapshot(self) -> RegistrySnapshot:
        identities = tuple(self._connections.values())
        return RegistrySnapshot(count=len(identities), identities=identities)

    def connections(self) -> list["RelayConnection"]:
        return list(self._connections)

    def open_connections(self) -> list["RelayConnection"]:
        """Stable copy of the connections still in OPEN state."""
        return [conn for conn in self._connections if conn.is_open]

    def observers(self) -> list["RelayConnection"]:
        return [conn for conn in self._connections if conn.is_observer and conn.is_open]

    # =========================================================================
    # Shutdown support
    # =========================================================================

    def begin_drain(self) -> list["RelayConnection"]:
        """Stop admitting connections and return the ones currently live."""
        self._draining = True
        return self.connections()

    def reopen(self) -> None:
        self._draining = False
