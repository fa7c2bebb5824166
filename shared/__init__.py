"""
Shared module for cross-cutting concerns of the relay gateway.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging

- shared.infrastructure: Runtime plumbing
  - correlation.py: Correlation IDs for HTTP requests and WebSocket connections
  - notifier.py: Error reporting (logging or Bugsnag)

- shared.security: Authentication
  - auth.py: Bearer token check for the HTTP read endpoints

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger
    from shared.infrastructure.notifier import create_notifier
    from shared.security.auth import require_bearer_token
"""
