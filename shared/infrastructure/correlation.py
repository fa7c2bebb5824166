"""
Correlation IDs.

Every log record is tagged with the ID of the unit of work that produced it:
the ``X-Request-ID`` of an HTTP request, or the identity of a WebSocket
connection for the whole life of that connection.
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Awaitable, Callable, Iterator

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"

# Placeholder written on records logged outside any request or connection
NO_CORRELATION_ID = "-"

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def current_correlation_id() -> str:
    return correlation_id_var.get()


@contextmanager
def bind_correlation_id(correlation_id: str) -> Iterator[None]:
    """
    Tag everything logged inside the block with ``correlation_id``.

    WebSocket endpoints bypass HTTP middleware, so they bind the connection
    identity with this directly.
    """
    token = correlation_id_var.set(correlation_id)
    try:
        yield
    finally:
        correlation_id_var.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Binds a correlation ID to each HTTP request.

    The caller's ``X-Request-ID`` is reused when present, otherwise a UUID4 is
    generated. Either way the ID is echoed back on the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        with bind_correlation_id(correlation_id):
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` so formatters can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or NO_CORRELATION_ID
        return True
