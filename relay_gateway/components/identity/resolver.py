"""
Identity Resolution.

Derives the identity of a new connection from its handshake path:

- ``/uuid/<value>`` with a syntactically valid UUID -> ``<value>`` verbatim
- anything else -> ``anon-`` followed by 20 random hex characters

Anonymous identities are not checked for collisions; with 80 random bits
a clash between live connections is not a practical concern.
"""

from __future__ import annotations

import re
import secrets

from relay_gateway.components.core.constants import (
    ANONYMOUS_PREFIX,
    ANONYMOUS_RANDOM_BYTES,
    UUID_PATH_PREFIX,
)

# RFC 4122 / RFC 9562 layout: versions 1-8 with the RFC variant, plus the
# nil and max UUIDs. Case-insensitive, hyphenated form only.
_UUID_PATTERN = re.compile(
    r"^(?:[0-9a-f]{8}-[0-9a-f]{4}-[1-8][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"
    r"|00000000-0000-0000-0000-000000000000"
    r"|ffffffff-ffff-ffff-ffff-ffffffffffff)$",
    re.IGNORECASE,
)


def is_valid_uuid(value: str) -> bool:
    return bool(_UUID_PATTERN.fullmatch(value))


def generate_anonymous_identity() -> str:
    """Return ``anon-`` + 20 hex characters from a CSPRNG."""
    return ANONYMOUS_PREFIX + secrets.token_hex(ANONYMOUS_RANDOM_BYTES)


def resolve_identity(path: str | None) -> str:
    """
    Resolve the identity for a connection opened on ``path``.

    Only the second path segment is considered, so ``/uuid/<value>/extra``
    still binds ``<value>``. Never raises: unparseable input falls through
    to an anonymous identity.
    """
    if path and path.startswith(UUID_PATH_PREFIX):
        segments = path.split("/")
        candidate = segments[2] if len(segments) > 2 else ""
        if is_valid_uuid(candidate):
            return candidate
    return generate_anonymous_identity()
