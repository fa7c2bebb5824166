from relay_gateway.components.events.types import InboundEnvelope, RelayedEnvelope

__all__ = [
    "InboundEnvelope",
    "RelayedEnvelope",
]
