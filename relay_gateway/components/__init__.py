"""
Relay gateway components.

- core: Constants and log-safe rendering of client data
- identity: Identity resolution from the handshake path
- connection: Per-connection handle with outbound writer
- events: Wire envelope models
- endpoints: WebSocket endpoint driving one connection
"""
