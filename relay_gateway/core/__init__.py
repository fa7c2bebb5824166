"""
Relay core: registry, routing, observer broadcast and lifecycle.

- connection/registry.py: ConnectionRegistry (live connection -> identity)
- connection/broadcaster.py: ObserverBroadcaster (dashboard snapshots)
- routing/router.py: MessageRouter (validation and relay fan-out)
- lifecycle/controller.py: LifecycleController (start/stop sequencing)
"""
