"""
Infrastructure module: correlation IDs and error reporting.
"""

from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    CorrelationIdMiddleware,
    bind_correlation_id,
    current_correlation_id,
)
from shared.infrastructure.notifier import (
    BugsnagNotifier,
    LoggingNotifier,
    Notifier,
    create_notifier,
)

__all__ = [
    # correlation
    "CorrelationIdFilter",
    "CorrelationIdMiddleware",
    "bind_correlation_id",
    "current_correlation_id",
    # notifier
    "BugsnagNotifier",
    "LoggingNotifier",
    "Notifier",
    "create_notifier",
]
