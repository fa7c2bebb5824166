"""
Lifecycle Controller.

Owns process-wide startup and shutdown of the relay:

    STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED

start() binds the listening socket itself (so port 0 and bind failures are
visible to the caller) and serves the ASGI app on it with uvicorn.
stop() drains every registered connection before the listener is closed,
and only returns once uvicorn reports the listener gone.

uvicorn's own signal capture is disabled; SIGTERM/SIGINT are routed to
stop() by install_signal_handlers() instead.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import socket
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterator

import uvicorn

from relay_gateway.components.core.constants import WSCloseCode, WSConstants
from relay_gateway.core.exceptions import LifecycleError, ListenerBindError
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI

    from relay_gateway.core.connection.registry import ConnectionRegistry

logger = get_logger(__name__)


class LifecycleState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class ServerHandle:
    """Where a started server is actually listening."""

    host: str
    port: int

    @property
    def ws_url(self) -> str:
        host = "localhost" if self.host in ("0.0.0.0", "::", "") else self.host
        return f"ws://{host}:{self.port}"


class RelayServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the controller."""

    def install_signal_handlers(self) -> None:
        # uvicorn < 0.29
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        # uvicorn >= 0.29
        yield


async def drain_connections(
    registry: "ConnectionRegistry",
    code: int = WSCloseCode.GOING_AWAY,
    reason: str = "Server shutting down",
) -> int:
    """
    Close every registered connection and wait until each one is released.

    The registry stops admitting connections first, so nothing admitted
    after this call can outlive it. There is no timeout: completion is
    gated on the transport confirming each close.

    Returns:
        Number of connections that were drained.
    """
    connections = registry.begin_drain()
    for connection in connections:
        try:
            connection.request_close(code, reason)
        except Exception as e:
            logger.warning(
                "Failed to request close",
                identity=connection.identity,
                error=str(e),
            )

    if connections:
        await asyncio.gather(*(conn.wait_closed() for conn in connections))
    return len(connections)


class LifecycleController:
    """
    Starts and stops the relay server.

    Usage:
        controller = LifecycleController(app, registry)
        handle = await controller.start(0)
        ...
        await controller.stop()
    """

    def __init__(
        self,
        app: "FastAPI",
        registry: "ConnectionRegistry",
        host: str = "0.0.0.0",
        log_level: str = "info",
    ) -> None:
        self.app = app
        self.registry = registry
        self.host = host
        self.log_level = log_level

        self.state = LifecycleState.STOPPED
        self._server: RelayServer | None = None
        self._serve_task: asyncio.Task | None = None
        self._handle: ServerHandle | None = None
        self._starting: asyncio.Future | None = None
        self._stopping: asyncio.Future | None = None

    @property
    def handle(self) -> ServerHandle | None:
        return self._handle

    # =========================================================================
    # Startup
    # =========================================================================

    async def start(self, port: int, host: str | None = None) -> ServerHandle:
        """
        Bind ``host:port`` and serve until stop().

        Resolves once uvicorn reports the listener bound and serving.

        Raises:
            ListenerBindError: The port could not be bound (not retried).
            LifecycleError: Not stopped, or the server exited during startup.
        """
        if self.state is not LifecycleState.STOPPED:
            raise LifecycleError(f"Cannot start while {self.state.value}")

        self.state = LifecycleState.STARTING
        self._starting = asyncio.get_running_loop().create_future()
        try:
            handle = await self._serve(host or self.host, port)
        except BaseException:
            self.state = LifecycleState.STOPPED
            self._server = None
            self._serve_task = None
            raise
        else:
            self.state = LifecycleState.RUNNING
            self._handle = handle
            logger.info(
                "Server started",
                port=handle.port,
                ws_url=handle.ws_url,
                uuid_url=f"{handle.ws_url}/uuid/{{uuid}}",
            )
            return handle
        finally:
            self._starting.set_result(None)

    def _bind(self, host: str, port: int) -> socket.socket:
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            logger.error("Failed to bind listener", host=host, port=port, error=str(e))
            raise ListenerBindError(host, port, e.strerror or str(e)) from e
        return sock

    async def _serve(self, host: str, port: int) -> ServerHandle:
        sock = self._bind(host, port)
        bound_port = sock.getsockname()[1]

        self.registry.reopen()
        config = uvicorn.Config(
            self.app,
            log_config=None,
            log_level=self.log_level,
            lifespan="on",
        )
        self._server = RelayServer(config)
        self._serve_task = asyncio.create_task(
            self._server.serve(sockets=[sock]),
            name="relay_server",
        )

        while not self._server.started:
            if self._serve_task.done():
                sock.close()
                error = None if self._serve_task.cancelled() else self._serve_task.exception()
                raise LifecycleError("Server exited during startup") from error
            await asyncio.sleep(WSConstants.STARTUP_POLL_INTERVAL)

        return ServerHandle(host=host, port=bound_port)

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def stop(self) -> None:
        """
        Drain connections, then close the listener.

        Idempotent, and safe to call while start() is still in progress
        (it waits for startup to settle first). Never raises for errors
        met while shutting down.
        """
        if self.state is LifecycleState.STARTING and self._starting is not None:
            await asyncio.shield(self._starting)

        if self.state is LifecycleState.STOPPED:
            return
        if self.state is LifecycleState.STOPPING and self._stopping is not None:
            await asyncio.shield(self._stopping)
            return

        self.state = LifecycleState.STOPPING
        self._stopping = asyncio.get_running_loop().create_future()
        try:
            await self._shutdown()
        finally:
            self.state = LifecycleState.STOPPED
            self._server = None
            self._serve_task = None
            self._handle = None
            self._stopping.set_result(None)

    async def _shutdown(self) -> None:
        logger.info("Closing WebSocket connections", total_connections=len(self.registry))
        try:
            drained = await drain_connections(self.registry)
            logger.info("WebSocket connections closed", count=drained)
        except Exception as e:
            logger.error("Error while draining connections", error=str(e), exc_info=True)

        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            results = await asyncio.gather(self._serve_task, return_exceptions=True)
            if isinstance(results[0], BaseException):
                logger.warning("Listener closed with error", error=repr(results[0]))
        logger.info("HTTP server closed")

    # =========================================================================
    # Process signals
    # =========================================================================

    def install_signal_handlers(self, on_signal: Callable[[], object]) -> None:
        """Route SIGTERM/SIGINT to ``on_signal`` on the running loop."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig, on_signal)
            except (NotImplementedError, RuntimeError):
                # Windows event loops / non-main threads
                logger.warning("Signal handlers unavailable", signal=sig.name)

    def _handle_signal(self, sig: signal.Signals, on_signal: Callable[[], object]) -> None:
        logger.info(f"{sig.name} signal received: closing HTTP server")
        on_signal()

    async def run_until_signal(self, port: int, host: str | None = None) -> None:
        """
        Serve until SIGTERM/SIGINT, then stop().

        Returns only after stop() has settled, so the process cannot exit
        with connections or the listener still open.
        """
        stop_requested = asyncio.Event()
        # Installed first so a signal during startup still runs stop()
        self.install_signal_handlers(stop_requested.set)
        try:
            await self.start(port, host)
            await stop_requested.wait()
        finally:
            await self.stop()
