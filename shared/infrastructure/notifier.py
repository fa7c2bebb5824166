"""
Error Reporting.

The gateway reports unexpected failures through a ``Notifier`` it receives
at construction time. Which backend sits behind it is a deployment concern:

- LoggingNotifier: writes the report to the ``relay.errors`` logger (default)
- BugsnagNotifier: forwards the report to Bugsnag (BUGSNAG_API_KEY set)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from shared.config.logging import error_report_logger, get_logger

if TYPE_CHECKING:
    from shared.config.settings import Settings

logger = get_logger(__name__)


class Notifier(Protocol):
    """Capability for reporting errors to an external tracker."""

    def notify(
        self,
        error: BaseException,
        severity: str = "error",
        context: str | None = None,
        **metadata: Any,
    ) -> None: ...


class LoggingNotifier:
    """Notifier that only records the report in the logs."""

    def notify(
        self,
        error: BaseException,
        severity: str = "error",
        context: str | None = None,
        **metadata: Any,
    ) -> None:
        log_fn = error_report_logger.warning if severity == "warning" else error_report_logger.error
        log_fn(
            "Error reported",
            error=repr(error),
            severity=severity,
            context=context,
            **metadata,
        )


class BugsnagNotifier:
    """Notifier backed by a Bugsnag client."""

    def __init__(self, api_key: str, release_stage: str = "development") -> None:
        import bugsnag

        self._client = bugsnag.Client(api_key=api_key, release_stage=release_stage)

    def notify(
        self,
        error: BaseException,
        severity: str = "error",
        context: str | None = None,
        **metadata: Any,
    ) -> None:
        options: dict[str, Any] = {"severity": severity}
        if context:
            options["context"] = context
        if metadata:
            options["metadata"] = {"relay": metadata}
        try:
            self._client.notify(error, **options)
        except Exception as e:
            # Reporting must never take the gateway down
            logger.warning("Bugsnag notify failed", error=str(e))


def create_notifier(app_settings: "Settings") -> Notifier:
    """Pick the notifier backend from settings."""
    if app_settings.bugsnag_api_key:
        logger.info("Bugsnag error reporting enabled", release_stage=app_settings.environment)
        return BugsnagNotifier(app_settings.bugsnag_api_key, app_settings.environment)
    return LoggingNotifier()
