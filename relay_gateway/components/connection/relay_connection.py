"""
Relay Connection.

Wraps one accepted WebSocket with the bookkeeping the gateway needs:
identity, observer flag, lifecycle state and an outbound queue.

Handlers never await a socket write. They enqueue frames with
``send_json()`` and a per-connection writer task drains the queue in order,
so routing and broadcasting run to completion without suspending.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from enum import Enum
from typing import TYPE_CHECKING, Any

from starlette.websockets import WebSocketState

from relay_gateway.components.core.constants import WSCloseCode
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)

DEFAULT_OUTBOX_SIZE = 256

# Outbox marker asking the writer to close the transport
_CLOSE = object()


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette only exposes CONNECTING/CONNECTED/DISCONNECTED, so a socket
    may still look connected briefly after a disconnect was initiated.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class ConnectionState(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class RelayConnection:
    """
    One live client session.

    ``identity`` is fixed at construction. ``is_observer`` can only go from
    False to True. ``state`` moves OPEN -> CLOSING -> CLOSED and never back.
    Instances hash by object identity, so two connections sharing an
    identity string are still distinct registry keys.
    """

    def __init__(
        self,
        websocket: "WebSocket",
        identity: str,
        outbox_size: int = DEFAULT_OUTBOX_SIZE,
    ) -> None:
        self.websocket = websocket
        self._identity = identity
        self._is_observer = False
        self.state = ConnectionState.OPEN

        self._outbox: asyncio.Queue[Any] = asyncio.Queue(maxsize=outbox_size)
        self._writer: asyncio.Task | None = None
        self._close_code: int = WSCloseCode.NORMAL
        self._close_reason: str = ""
        self._closed = asyncio.Event()

    def __repr__(self) -> str:
        return (
            f"RelayConnection(identity={self._identity!r}, "
            f"observer={self._is_observer}, state={self.state.value})"
        )

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def is_observer(self) -> bool:
        return self._is_observer

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def mark_observer(self) -> bool:
        """Flag the connection as an observer. Returns False if it already was one."""
        if self._is_observer:
            return False
        self._is_observer = True
        return True

    # =========================================================================
    # Outbound
    # =========================================================================

    def send_json(self, payload: dict[str, Any]) -> bool:
        """
        Queue a JSON frame for delivery without waiting for the socket.

        Returns:
            True if queued, False if the connection is not open or the
            outbox is full (the frame is dropped).
        """
        if not self.is_open:
            return False
        try:
            self._outbox.put_nowait(json.dumps(payload))
        except asyncio.QueueFull:
            logger.warning(
                "Outbox full, dropping frame",
                identity=self._identity,
                pending=self._outbox.qsize(),
            )
            return False
        return True

    def request_close(
        self,
        code: int = WSCloseCode.GOING_AWAY,
        reason: str = "",
    ) -> None:
        """
        Ask the writer to close the transport after the frames queued so far.

        Moves the connection to CLOSING. Calling it again is a no-op.
        """
        if self.state is not ConnectionState.OPEN:
            return
        self.state = ConnectionState.CLOSING
        self._close_code = code
        self._close_reason = reason
        if self._writer is None or self._writer.done():
            # No writer left to drain the outbox: drop it and close directly
            self._discard_pending()
            self._writer = asyncio.create_task(
                self._close_transport(),
                name=f"relay_close:{self._identity}",
            )
            return
        if self._outbox.full():
            # Closing matters more than the oldest pending frame
            self._outbox.get_nowait()
            self._outbox.task_done()
        self._outbox.put_nowait(_CLOSE)

    def mark_closing(self) -> None:
        """Record that the transport is going away (e.g. client disconnect)."""
        if self.state is ConnectionState.OPEN:
            self.state = ConnectionState.CLOSING

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to the transport."""
        await self._outbox.join()

    # =========================================================================
    # Writer task
    # =========================================================================

    def start_writer(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(
                self._write_loop(),
                name=f"relay_writer:{self._identity}",
            )

    async def _write_loop(self) -> None:
        try:
            while True:
                item = await self._outbox.get()
                try:
                    if item is _CLOSE:
                        await self._close_transport()
                        return
                    if not is_ws_connected(self.websocket):
                        return
                    await self.websocket.send_text(item)
                except Exception as e:
                    # Best effort: the reader notices the dead socket and cleans up
                    logger.debug("Send failed", identity=self._identity, error=str(e))
                    return
                finally:
                    self._outbox.task_done()
        finally:
            # A dead writer means nothing queued later would ever be sent
            self.mark_closing()
            self._discard_pending()

    async def _close_transport(self) -> None:
        if not is_ws_connected(self.websocket):
            return
        try:
            await self.websocket.close(code=self._close_code, reason=self._close_reason)
        except Exception as e:
            logger.debug("Close failed", identity=self._identity, error=str(e))

    def _discard_pending(self) -> None:
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()

    async def finish(self) -> None:
        """
        Final cleanup, run once the receive loop has ended.

        Stops the writer, drops undelivered frames and signals
        ``wait_closed()``. Safe to call more than once.
        """
        self.mark_closing()
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer
        self._discard_pending()
        self.state = ConnectionState.CLOSED
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()
