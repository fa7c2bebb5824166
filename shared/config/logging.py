"""
Structured logging for the relay.

Loggers accept keyword context next to the message:

    logger.info("Client connected", identity=identity, total_connections=3)

The keywords travel on the record as ``log_context`` and are rendered as a
JSON object in production or as ``key=value`` pairs in development. Records
also carry the correlation ID bound by shared.infrastructure.correlation.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from shared.config.settings import Settings

SERVICE_NAME = "relay-gateway"

ERROR_LOG_FILE = "error.log"
COMBINED_LOG_FILE = "combined.log"

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "websockets": logging.WARNING,
    "httpx": logging.WARNING,
}


def _correlation_id(record: logging.LogRecord) -> str | None:
    value = getattr(record, "correlation_id", None)
    return value if value and value != "-" else None


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers and the file sinks."""

    def __init__(self, include_source: bool = False) -> None:
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = _correlation_id(record)
        if correlation_id:
            entry["correlation_id"] = correlation_id

        context = getattr(record, "log_context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Coloured single-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: 36,
        logging.INFO: 32,
        logging.WARNING: 33,
        logging.ERROR: 31,
        logging.CRITICAL: 35,
    }

    @staticmethod
    def _paint(text: str, code: int) -> str:
        return f"\033[{code}m{text}\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = self._paint(f"{record.levelname:<8}", self.LEVEL_COLORS.get(record.levelno, 0))
        parts = [clock, level]

        correlation_id = _correlation_id(record)
        if correlation_id:
            # Short form: enough to tell connections apart
            parts.append(self._paint(f"<{correlation_id[:13]}>", 2))

        parts.append(f"{record.name} | {record.getMessage()}")

        context = getattr(record, "log_context", None)
        if context:
            parts.append(" ".join(f"{key}={value!r}" for key, value in context.items()))

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose methods take arbitrary keyword context.

    ``exc_info``, ``extra``, ``stack_info`` and ``stacklevel`` keep their
    standard meaning; every other keyword ends up in ``record.log_context``.
    """

    def _log(
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: Mapping[str, object] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **context: Any,
    ) -> None:
        merged = dict(extra) if extra else {}
        merged["log_context"] = context or None
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=merged,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def _file_sink(path: str, level: int, correlation_filter: logging.Filter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.addFilter(correlation_filter)
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logging(app_settings: "Settings | None" = None) -> None:
    """
    Configure the root logger. Call once from the process entry point.

    Console output is JSON in production and coloured text elsewhere. With
    ``log_to_file`` set, ``error.log`` (errors only) and ``combined.log``
    are also written as JSON lines under ``log_dir``.
    """
    # Deferred to avoid an import cycle through shared.infrastructure
    from shared.config.settings import settings as default_settings
    from shared.infrastructure.correlation import CorrelationIdFilter

    app_settings = app_settings or default_settings
    log_level = logging.DEBUG if app_settings.debug else logging.INFO
    correlation_filter = CorrelationIdFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    console.addFilter(correlation_filter)
    if app_settings.environment == "production":
        console.setFormatter(StructuredFormatter(include_source=app_settings.debug))
    else:
        console.setFormatter(DevelopmentFormatter())

    root = logging.getLogger()
    for previous in list(root.handlers):
        root.removeHandler(previous)
        previous.close()
    root.setLevel(log_level)
    root.addHandler(console)

    if app_settings.log_to_file:
        os.makedirs(app_settings.log_dir, exist_ok=True)
        root.addHandler(
            _file_sink(
                os.path.join(app_settings.log_dir, ERROR_LOG_FILE),
                logging.ERROR,
                correlation_filter,
            )
        )
        root.addHandler(
            _file_sink(
                os.path.join(app_settings.log_dir, COMBINED_LOG_FILE),
                log_level,
                correlation_filter,
            )
        )

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


relay_logger = get_logger("relay_gateway")
error_report_logger = get_logger("relay.errors")
