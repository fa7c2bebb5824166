"""
Pytest configuration and fixtures for relay gateway tests.
"""

import asyncio
import json
import time
from typing import Any, Callable

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from relay_gateway.components.connection.relay_connection import RelayConnection
from relay_gateway.core.connection.broadcaster import ObserverBroadcaster
from relay_gateway.core.connection.registry import ConnectionRegistry
from relay_gateway.core.routing.router import MessageRouter
from relay_gateway.main import create_app
from shared.config.settings import Settings


AUTH_TOKEN = "test-token"
FROM_SERVER = "from_server"
TO_CLIENT = "to_client"

VALID_UUID = "0f8fad5b-d9cb-469f-a165-70867728950e"
OTHER_UUID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"


class FakeWebSocket:
    """Minimal stand-in for a Starlette WebSocket on the sending side."""

    def __init__(self, fail_sends: bool = False) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.fail_sends = fail_sends
        self.sent: list[str] = []
        self.close_code: int | None = None

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise ConnectionError("socket gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(data) for data in self.sent]


class RecordingNotifier:
    """Notifier that keeps every report for assertions."""

    def __init__(self) -> None:
        self.reports: list[dict[str, Any]] = []

    def notify(self, error, severity="error", context=None, **metadata) -> None:
        self.reports.append(
            {"error": error, "severity": severity, "context": context, "metadata": metadata}
        )


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll ``predicate`` from the test thread while the app runs in TestClient's loop."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not met before timeout")
        time.sleep(interval)


async def wait_until_async(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.01)


async def frames_of(connection: RelayConnection) -> list[dict[str, Any]]:
    """Everything the connection has written so far, once its outbox is drained."""
    await connection.flush()
    return connection.websocket.frames()


# =============================================================================
# Core component fixtures
# =============================================================================


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def broadcaster(registry):
    return ObserverBroadcaster(registry)


@pytest.fixture
def router(registry):
    return MessageRouter(registry, from_server_type=FROM_SERVER, to_client_type=TO_CLIENT)


@pytest_asyncio.fixture
async def connect():
    """
    Factory for live connections backed by FakeWebSocket.

    Writers are started on the test loop and stopped on teardown.
    """
    created: list[RelayConnection] = []

    def factory(
        identity: str,
        registry: ConnectionRegistry | None = None,
        fail_sends: bool = False,
    ) -> RelayConnection:
        connection = RelayConnection(FakeWebSocket(fail_sends=fail_sends), identity)
        connection.start_writer()
        created.append(connection)
        if registry is not None:
            registry.register(connection)
        return connection

    yield factory

    for connection in created:
        await connection.finish()


# =============================================================================
# Application fixtures
# =============================================================================


@pytest.fixture
def test_settings():
    return Settings(
        auth_token=AUTH_TOKEN,
        from_server_type=FROM_SERVER,
        to_client_type=TO_CLIENT,
        environment="test",
        bugsnag_api_key="",
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(test_settings, notifier):
    return create_app(test_settings, notifier=notifier)


@pytest.fixture
def client(app):
    """
    Test client running the app's lifespan.
    Server exceptions are turned into responses so error handlers can be asserted.
    """
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {AUTH_TOKEN}"}
