"""
Wire envelopes exchanged with clients.

Inbound frames are JSON objects ``{type, message, uuid}``. Extra keys are
ignored; ``type`` is required, the other two may be absent (such frames are
simply never eligible for relay).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class InboundEnvelope(BaseModel):
    """Frame received from a client."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: str
    message: Any = None
    uuid: str | None = None


class RelayedEnvelope(BaseModel):
    """Frame delivered to peers on behalf of the sender."""

    model_config = ConfigDict(frozen=True)

    type: str
    message: Any = None
    uuid: str | None = None

    @classmethod
    def from_inbound(cls, inbound: InboundEnvelope, delivery_type: str) -> "RelayedEnvelope":
        return cls(type=delivery_type, message=inbound.message, uuid=inbound.uuid)
