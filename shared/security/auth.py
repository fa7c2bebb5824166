"""
Authentication utilities.
Guards the HTTP read endpoints with a static bearer token (AUTH_TOKEN).
"""

from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Args:
        authorization: The Authorization header value.

    Returns:
        The second whitespace-separated part of the header ("" if absent).

    Raises:
        HTTPException: 401 if the header is missing.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    parts = authorization.split(" ", 1)
    return parts[1].strip() if len(parts) > 1 else ""


def verify_bearer_token(token: str, expected: str) -> bool:
    """Constant-time comparison; an unset expected token matches nothing."""
    if not expected:
        return False
    return hmac.compare_digest(token.encode(), expected.encode())


def require_bearer_token(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> None:
    """
    FastAPI dependency protecting an endpoint with AUTH_TOKEN.

    Usage:
        @app.get("/clients", dependencies=[Depends(require_bearer_token)])
        def list_clients(): ...

    Raises:
        HTTPException: 401 without credentials, 403 with the wrong token.
    """
    token = get_bearer_token(authorization)
    expected = request.app.state.settings.auth_token
    if not verify_bearer_token(token, expected):
        logger.warning("Rejected bearer token", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )
