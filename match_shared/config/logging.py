"""
Structured logging for the match gateway.

Loggers accept keyword fields (``logger.info("Matched", pool_size=3)``); the
fields travel on the record as ``extra_data`` and are rendered as JSON in
production or as ``key=value`` pairs on a coloured line in development.
Records are stamped with the connection being served by
``match_shared.infrastructure.correlation.ConnectionIdFilter``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from match_shared.config.settings import settings

# Keyword arguments the stdlib Logger._log understands itself
_LOG_KWARGS = frozenset({"exc_info", "extra", "stack_info", "stacklevel"})


def _connection_of(record: logging.LogRecord) -> str | None:
    connection_id = getattr(record, "connection_id", None)
    return connection_id if connection_id and connection_id != "-" else None


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation in production."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        connection_id = _connection_of(record)
        if connection_id:
            entry["connection_id"] = connection_id
        fields = getattr(record, "extra_data", None)
        if fields:
            entry["data"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.filename}:{record.lineno}"
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Coloured single-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [f"{color}[{stamp}] {record.levelname:<8}{self.RESET}"]

        connection_id = _connection_of(record)
        if connection_id:
            parts.append(f"{self.DIM}{connection_id[:8]}{self.RESET}")
        parts.append(f"{record.name}: {record.getMessage()}")

        fields = getattr(record, "extra_data", None)
        if fields:
            parts.append("(" + ", ".join(f"{k}={v}" for k, v in fields.items()) + ")")

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose level methods take arbitrary keyword fields.

    The stdlib level methods forward their keyword arguments to ``_log``;
    anything ``_log`` does not know about is moved into
    ``record.extra_data``.
    """

    def _log(self, level: int, msg: object, args: Any, **kwargs: Any) -> None:  # type: ignore[override]
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOG_KWARGS}
        extra = dict(kwargs.pop("extra", None) or {})
        extra["extra_data"] = fields or None
        kwargs["stacklevel"] = kwargs.get("stacklevel", 1) + 1
        super()._log(level, msg, args, extra=extra, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Call once at startup."""
    # Deferred: correlation imports this module
    from match_shared.infrastructure.correlation import ConnectionIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ConnectionIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("Connections matched", initiator_id=a.id, responder_id=b.id)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_email(email: str | None) -> str:
    """Keep the first two characters of the local part and the domain."""
    if not email:
        return "<no-email>"
    local, sep, domain = email.partition("@")
    if not sep or not local:
        return "***@invalid"
    return f"{local[:2]}***@{domain}"


gateway_logger = get_logger("match_gateway")

security_audit_logger = get_logger("security.audit")


def audit_ws_connection(event_type: str, endpoint: str, **fields: Any) -> None:
    """
    Write a WebSocket security event (CONNECT, DISCONNECT, AUTH_FAILED, ...)
    to the audit logger. An ``identity`` field is masked.
    """
    if fields.get("identity"):
        fields["identity"] = mask_email(fields["identity"])
    security_audit_logger.info(
        f"WS_AUDIT: {event_type}",
        event_type=event_type,
        endpoint=endpoint,
        **fields,
    )
