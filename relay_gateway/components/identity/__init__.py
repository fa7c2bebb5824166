from relay_gateway.components.identity.resolver import (
    generate_anonymous_identity,
    is_valid_uuid,
    resolve_identity,
)

__all__ = [
    "generate_anonymous_identity",
    "is_valid_uuid",
    "resolve_identity",
]
