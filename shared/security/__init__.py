"""
Security module: bearer token authentication.
"""

from shared.security.auth import get_bearer_token, require_bearer_token

__all__ = [
    "get_bearer_token",
    "require_bearer_token",
]
