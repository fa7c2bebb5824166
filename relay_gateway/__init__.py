"""
Relay Gateway.

Real-time WebSocket relay: clients exchange JSON messages through a central
hub, observers receive live snapshots of who is connected.
"""

__version__ = "1.0.0"
