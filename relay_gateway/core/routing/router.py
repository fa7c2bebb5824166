"""
Message Router.

Validates frames received from a client and relays them to its peers.

Routing rules, in order:
1. Frames that are not a JSON envelope are dropped with a warning.
2. The observer handshake flags the sender as an observer; nothing is sent.
3. A peer-authored frame (FROM_SERVER_TYPE) is forwarded to every other
   open connection, rewritten as TO_CLIENT_TYPE, but only when its ``uuid``
   equals the sender's own identity. A sender cannot speak for anyone else.

Recipients are not filtered by identity: relaying is a broadcast with an
authenticity check on the claimed origin.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import ValidationError

from relay_gateway.components.core.constants import MSG_OBSERVER_IDENTIFY
from relay_gateway.components.core.context import sanitize_log_data
from relay_gateway.components.events.types import InboundEnvelope, RelayedEnvelope
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from relay_gateway.components.connection.relay_connection import RelayConnection
    from relay_gateway.core.connection.registry import ConnectionRegistry

logger = get_logger(__name__)


class RouteOutcome(str, Enum):
    MALFORMED = "malformed"
    OBSERVER_IDENTIFIED = "observer_identified"
    SPOOFED_ORIGIN = "spoofed_origin"
    IGNORED = "ignored"
    RELAYED = "relayed"


@dataclass(frozen=True)
class RouteResult:
    outcome: RouteOutcome
    delivered: int = 0


class MessageRouter:
    """
    Routes inbound frames using the registry for fan-out targets.

    Args:
        registry: Live connection registry.
        from_server_type: Type literal marking a peer-authored frame.
        to_client_type: Type literal stamped on relayed frames.
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        from_server_type: str,
        to_client_type: str,
    ) -> None:
        self._registry = registry
        self.from_server_type = from_server_type
        self.to_client_type = to_client_type

    def route(self, sender: "RelayConnection", raw: str | bytes) -> RouteResult:
        envelope = self._parse(sender, raw)
        if envelope is None:
            return RouteResult(RouteOutcome.MALFORMED)

        if envelope.type == MSG_OBSERVER_IDENTIFY:
            if sender.mark_observer():
                logger.info("Observer identified", identity=sender.identity)
            return RouteResult(RouteOutcome.OBSERVER_IDENTIFIED)

        if envelope.type != self.from_server_type:
            logger.debug(
                "Ignoring frame with unrelayed type",
                identity=sender.identity,
                type=sanitize_log_data(envelope.type),
            )
            return RouteResult(RouteOutcome.IGNORED)

        if envelope.uuid != sender.identity:
            logger.debug(
                "Dropping frame with foreign origin",
                identity=sender.identity,
                claimed_uuid=sanitize_log_data(str(envelope.uuid)),
            )
            return RouteResult(RouteOutcome.SPOOFED_ORIGIN)

        return RouteResult(RouteOutcome.RELAYED, self._relay(sender, envelope))

    def _parse(self, sender: "RelayConnection", raw: str | bytes) -> InboundEnvelope | None:
        try:
            return InboundEnvelope.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Dropping malformed message",
                identity=sender.identity,
                errors=e.error_count(),
                message=sanitize_log_data(raw),
            )
            return None

    def _relay(self, sender: "RelayConnection", envelope: InboundEnvelope) -> int:
        payload = RelayedEnvelope.from_inbound(envelope, self.to_client_type).model_dump()

        # Targets are fixed before sending so a close mid-loop cannot
        # skip or revisit a peer
        targets = self._registry.open_connections()
        delivered = 0
        for peer in targets:
            if peer is sender:
                continue
            if peer.send_json(payload):
                delivered += 1

        logger.debug(
            "Message relayed",
            identity=sender.identity,
            delivered=delivered,
        )
        return delivered
