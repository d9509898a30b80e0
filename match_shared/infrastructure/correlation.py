"""
Connection correlation IDs for logging.

Each WebSocket endpoint binds its connection id into a context variable for
the duration of its task, so every log line emitted while serving that
connection can be traced back to it.
"""

import logging
from contextvars import ContextVar, Token

# Context variable for the connection being served (task-local)
connection_id_var: ContextVar[str] = ContextVar("connection_id", default="")


def get_connection_id() -> str:
    """Get the id of the connection being served by the current task."""
    return connection_id_var.get()


def bind_connection_id(connection_id: str) -> Token:
    """Bind a connection id to the current context. Returns a reset token."""
    return connection_id_var.set(connection_id)


def reset_connection_id(token: Token) -> None:
    """Restore the previous connection id."""
    connection_id_var.reset(token)


class ConnectionIdFilter(logging.Filter):
    """
    Logging filter that adds connection_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(ConnectionIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection_id = connection_id_var.get() or "-"
        return True
