from relay_gateway.core.routing.router import MessageRouter, RouteOutcome, RouteResult

__all__ = [
    "MessageRouter",
    "RouteOutcome",
    "RouteResult",
]
