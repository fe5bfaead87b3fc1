"""
Structured Logging with Correlation IDs

Provides logging utilities that automatically include:
- command: The CLI command being run (e.g. "epicor.case.complete-task")
- service: The external service being called ("bitwarden", "epicor")
- case_number: The Epicor case being worked on

Logs go to stderr; stdout is reserved for command results.

Usage:
    from omni.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(service="epicor", case_number=12345):
        logger.info("Completing task")  # Includes service and case_number

Never pass secrets (passwords, API keys, tokens) to a logger.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating log lines within one invocation."""
    command: Optional[str] = None
    service: Optional[str] = None
    case_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        """Create a new context with merged values."""
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext()
)


def get_correlation_context() -> CorrelationContext:
    """Get the current correlation context."""
    return _correlation_context.get()


@contextmanager
def with_correlation(**kwargs):
    """
    Context manager to set correlation fields for logging.

    Usage:
        with with_correlation(command="bitwarden.list"):
            logger.info("Listing")  # Will include command
    """
    new_ctx = get_correlation_context().merge(**kwargs)
    token = _correlation_context.set(new_ctx)
    try:
        yield new_ctx
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that includes correlation context.

    Output format:
    {
        "timestamp": "2024-01-09T12:00:00.000000Z",
        "level": "INFO",
        "logger": "omni.connectors.epicor.ep_client",
        "message": "Task completed",
        "command": "epicor.case.complete-task",
        "case_number": 12345
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(get_correlation_context().to_dict())

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter that includes the correlation fields.

    Output format:
    2024-01-09 12:00:00 [INFO ] omni.cli [epicor/case:12345]: Completing task
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()

        parts = []
        if ctx.service:
            parts.append(ctx.service)
        if ctx.case_number is not None:
            parts.append(f"case:{ctx.case_number}")
        correlation = "/".join(parts) if parts else "-"

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"

        extra = getattr(record, "extra_fields", None)
        if extra:
            msg += " " + " ".join(f"{k}={v}" for k, v in extra.items())

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Logger wrapper that accepts per-call ``extra_fields``.

    Correlation context is added by the formatters.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra_fields = kwargs.pop("extra_fields", {})
        exc_info = kwargs.pop("exc_info", None)
        if exc_info is True:
            exc_info = sys.exc_info()

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            args,
            exc_info,
        )
        record.extra_fields = extra_fields
        self._logger.handle(record)

    def debug(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.DEBUG):
            self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.INFO):
            self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.WARNING):
            self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.error(msg, *args, **kwargs)

    def setLevel(self, level):
        self._logger.setLevel(level)

    def isEnabledFor(self, level):
        return self._logger.isEnabledFor(level)


# =============================================================================
# Logger Factory
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_handler: Optional[logging.Handler] = None


def configure_logging(level: int = logging.WARNING, json_format: bool = False, stream=None):
    """
    Configure logging for the application.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Logging level
        json_format: If True, use JSON format; otherwise human-readable
        stream: Output stream (default: stderr)
    """
    global _handler

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    omni_logger = logging.getLogger("omni")
    if _handler is not None:
        omni_logger.removeHandler(_handler)
    omni_logger.addHandler(handler)
    omni_logger.setLevel(level)
    omni_logger.propagate = False
    _handler = handler

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(max(level, logging.WARNING))
    logging.getLogger("asyncio").setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> CorrelatedLogger:
    """
    Get a correlated logger for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        CorrelatedLogger instance
    """
    if name not in _loggers:
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return _loggers[name]
