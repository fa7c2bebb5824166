"""
Observer Broadcaster.

Pushes a registry snapshot to every observer connection whenever the
registry changes. Never runs for ordinary relayed messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from relay_gateway.components.core.constants import MSG_DASHBOARD_UPDATE
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from relay_gateway.core.connection.registry import ConnectionRegistry

logger = get_logger(__name__)


class ObserverBroadcaster:
    """
    Sends ``dashboard_update`` envelopes to observers.

    Subscribes itself to the registry on construction, so each
    register/unregister produces exactly one broadcast attempt.
    """

    def __init__(self, registry: "ConnectionRegistry") -> None:
        self._registry = registry
        registry.subscribe(self.broadcast_snapshot)

    def build_update(self) -> dict[str, Any]:
        snapshot = self._registry.snapshot()
        return {
            "type": MSG_DASHBOARD_UPDATE,
            "count": snapshot.count,
            "clients": list(snapshot.identities),
        }

    def broadcast_snapshot(self) -> int:
        """
        Queue the current snapshot on every open observer.

        Returns:
            Number of observers the update was queued for. A failure for
            one observer is logged and skipped.
        """
        observers = self._registry.observers()
        if not observers:
            return 0

        payload = self.build_update()
        sent = 0
        for observer in observers:
            try:
                if observer.send_json(payload):
                    sent += 1
            except Exception as e:
                logger.warning(
                    "Failed to queue dashboard update",
                    identity=observer.identity,
                    error=str(e),
                )

        logger.debug(
            "Dashboard update broadcast",
            observers=len(observers),
            sent=sent,
            count=payload["count"],
        )
        return sent
