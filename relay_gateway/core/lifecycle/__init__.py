from relay_gateway.core.lifecycle.controller import (
    LifecycleController,
    LifecycleState,
    ServerHandle,
    drain_connections,
)

__all__ = [
    "LifecycleController",
    "LifecycleState",
    "ServerHandle",
    "drain_connections",
]
