"""
Relay Gateway main application.

Clients connect over WebSocket on any path (``/uuid/<uuid>`` to choose
their identity) and exchange JSON messages through the relay. Observer
connections receive live ``dashboard_update`` snapshots instead.

HTTP surface:
- GET /         readiness text
- GET /clients  live registry snapshot (bearer token)
- GET /health   service status and connection counts
"""

from __future__ import annotations

import asyncio
import sys
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, WebSocket
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from relay_gateway import __version__
from relay_gateway.components.core.constants import INTERNAL_ERROR_TEXT, ROOT_READY_TEXT
from relay_gateway.components.endpoints.relay import RelayEndpoint
from relay_gateway.core.connection.broadcaster import ObserverBroadcaster
from relay_gateway.core.connection.registry import ConnectionRegistry
from relay_gateway.core.lifecycle.controller import LifecycleController, drain_connections
from relay_gateway.core.routing.router import MessageRouter
from shared.config.logging import relay_logger as logger
from shared.config.logging import setup_logging
from shared.config.settings import Settings, settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.infrastructure.notifier import Notifier, create_notifier
from shared.security.auth import require_bearer_token


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Re-opens the registry on startup and drains whatever is still
    connected on shutdown (a no-op when LifecycleController already did).
    """
    registry: ConnectionRegistry = app.state.registry
    registry.reopen()
    logger.info(
        "Starting Relay Gateway",
        env=app.state.settings.environment,
        version=app.version,
    )

    yield

    logger.info("Shutting down Relay Gateway")
    try:
        await drain_connections(registry)
    except Exception as e:
        logger.warning("Error draining connections on shutdown", error=str(e))


# =============================================================================
# Error handlers
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def unhandled_route_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code != 404:
            return await http_exception_handler(request, exc)

        # Unknown routes are reported and answered like server errors
        error = LookupError(f"Not Found - {request.url.path}")
        logger.warning("Unhandled route", path=request.url.path, method=request.method)
        request.app.state.notifier.notify(error, severity="warning", context="unhandled-route")
        return PlainTextResponse(INTERNAL_ERROR_TEXT, status_code=500)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            path=request.url.path,
            error=str(exc),
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        request.app.state.notifier.notify(exc, context="http", path=request.url.path)
        return PlainTextResponse(INTERNAL_ERROR_TEXT, status_code=500)


# =============================================================================
# Routes
# =============================================================================


def register_routes(app: FastAPI) -> None:
    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return ROOT_READY_TEXT

    @app.get("/clients", dependencies=[Depends(require_bearer_token)])
    def list_clients(request: Request) -> dict:
        """Live registry snapshot: ``{count, clients}``."""
        return request.app.state.registry.snapshot().to_dict()

    @app.get("/health")
    def health_check(request: Request) -> dict:
        registry: ConnectionRegistry = request.app.state.registry
        return {
            "status": "draining" if registry.is_draining else "healthy",
            "service": "relay-gateway",
            "version": app.version,
            "environment": request.app.state.settings.environment,
            "total_connections": len(registry),
            "observers": len(registry.observers()),
        }

    @app.websocket("/{path:path}")
    async def relay_websocket(websocket: WebSocket, path: str):
        """Relay endpoint; ``/uuid/<uuid>`` binds a caller-chosen identity."""
        state = websocket.app.state
        endpoint = RelayEndpoint(
            websocket,
            state.registry,
            state.router,
            state.notifier,
            outbox_size=state.settings.ws_outbox_max_size,
        )
        await endpoint.run()


# =============================================================================
# FastAPI Application
# =============================================================================


def create_app(
    app_settings: Settings | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """
    Build the relay application.

    Each app owns its registry, so several instances (e.g. in tests) never
    share connection state.
    """
    app_settings = app_settings or settings

    registry = ConnectionRegistry()
    broadcaster = ObserverBroadcaster(registry)
    router = MessageRouter(
        registry,
        from_server_type=app_settings.from_server_type,
        to_client_type=app_settings.to_client_type,
    )

    app = FastAPI(
        title="Relay Gateway",
        description="Real-time WebSocket message relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.router = router
    app.state.notifier = notifier or create_notifier(app_settings)

    app.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(app)
    register_routes(app)
    return app


app = create_app()


# =============================================================================
# Process entry point
# =============================================================================


def main() -> None:
    """Run the relay until SIGTERM/SIGINT, draining connections before exit."""
    setup_logging(settings)

    errors = settings.validate_message_types()
    if errors:
        for error in errors:
            logger.critical("Invalid configuration", error=error)
        sys.exit(1)

    controller = LifecycleController(app, app.state.registry, host=settings.host)
    asyncio.run(controller.run_until_signal(settings.port))
    logger.info("Server turned off")


if __name__ == "__main__":
    main()
