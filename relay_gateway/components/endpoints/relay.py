"""
Relay WebSocket Endpoint.

One instance per accepted socket. ``run()`` owns the whole life of the
connection:

1. Resolve the identity from the path and accept the socket
2. Start the outbound writer and register with the ConnectionRegistry
3. Receive loop, each frame handed to the MessageRouter
4. Unregister and release the connection (always, in ``finally``)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from relay_gateway.components.connection.relay_connection import (
    DEFAULT_OUTBOX_SIZE,
    RelayConnection,
)
from relay_gateway.components.core.constants import WSCloseCode
from relay_gateway.components.identity.resolver import resolve_identity
from relay_gateway.core.exceptions import RegistryClosedError
from shared.config.logging import get_logger
from shared.infrastructure.correlation import bind_correlation_id

if TYPE_CHECKING:
    from fastapi import WebSocket

    from relay_gateway.core.connection.registry import ConnectionRegistry
    from relay_gateway.core.routing.router import MessageRouter
    from shared.infrastructure.notifier import Notifier

logger = get_logger(__name__)


class RelayEndpoint:
    """
    Drives a single relay connection.

    Usage:
        endpoint = RelayEndpoint(websocket, registry, router, notifier)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: "WebSocket",
        registry: "ConnectionRegistry",
        router: "MessageRouter",
        notifier: "Notifier",
        outbox_size: int = DEFAULT_OUTBOX_SIZE,
    ) -> None:
        self.websocket = websocket
        self.registry = registry
        self.router = router
        self.notifier = notifier
        self.outbox_size = outbox_size
        self.connection: RelayConnection | None = None

    @property
    def path(self) -> str:
        return self.websocket.url.path

    async def run(self) -> None:
        identity = resolve_identity(self.path)
        with bind_correlation_id(identity):
            if not await self._accept(identity):
                return
            if not await self._admit(identity):
                return

            try:
                await self._message_loop()
            except Exception as e:
                logger.error(
                    "WebSocket error",
                    identity=identity,
                    error=str(e),
                    exc_info=True,
                )
                self.notifier.notify(e, context="websocket", identity=identity)
                self.connection.request_close(WSCloseCode.SERVER_ERROR, "Internal error")
                await self.connection.flush()
            finally:
                await self._release()

    async def _accept(self, identity: str) -> bool:
        """Complete the handshake. Returns False if the client went away first."""
        try:
            await self.websocket.accept()
        except Exception as e:
            logger.error(
                "WebSocket handshake failed",
                identity=identity,
                path=self.path,
                error=str(e),
                exc_info=True,
            )
            self.notifier.notify(e, context="admission", identity=identity)
            return False
        return True

    async def _admit(self, identity: str) -> bool:
        """Register the connection. Returns False if it was turned away."""
        connection = RelayConnection(self.websocket, identity, self.outbox_size)
        connection.start_writer()
        try:
            self.registry.register(connection)
        except RegistryClosedError:
            logger.info("Connection refused while draining", identity=identity, path=self.path)
            connection.request_close(WSCloseCode.GOING_AWAY, "Server shutting down")
            await connection.flush()
            await connection.finish()
            return False
        except Exception as e:
            logger.error(
                "Error in WebSocket connection",
                identity=identity,
                path=self.path,
                error=str(e),
                exc_info=True,
            )
            self.notifier.notify(e, context="admission", identity=identity)
            connection.request_close(WSCloseCode.SERVER_ERROR, "Admission failed")
            await connection.flush()
            await connection.finish()
            return False

        self.connection = connection
        return True

    async def _message_loop(self) -> None:
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(
                    "Client closed connection",
                    identity=self.connection.identity,
                    code=message.get("code"),
                )
                return

            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue
            self.router.route(self.connection, data)

    async def _release(self) -> None:
        connection = self.connection
        if connection is None:
            return
        connection.mark_closing()
        self.registry.unregister(connection)
        await connection.finish()
