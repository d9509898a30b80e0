"""
Pytest configuration and fixtures for match gateway tests.
"""

import pytest
from fastapi.testclient import TestClient

from match_shared.config.settings import Settings
from match_shared.security.auth import sign_identity_token
from match_gateway.components.connection.record import Connection
from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.components.metrics.collector import MetricsCollector
from match_gateway.connection_manager import ConnectionManager
from match_gateway.core.session.lifecycle import SessionLifecycle


def drain(conn: Connection) -> list[tuple[str, object]]:
    """Pop every queued frame from a connection's outbox as (event, data)."""
    frames = []
    while not conn.outbox.empty():
        message = conn.outbox.get_nowait()
        frames.append((message.event.value, message.data))
    return frames


def events(conn: Connection) -> list[str]:
    """Event names queued for a connection (drains the outbox)."""
    return [event for event, _ in drain(conn)]


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def lifecycle(registry, metrics):
    """A session state machine with no transport attached."""
    return SessionLifecycle(registry, metrics=metrics)


@pytest.fixture
def identity_token():
    """Factory for valid identity tokens."""
    def _make(identity: str = "ana@abes.ac.in", **kwargs) -> str:
        return sign_identity_token(identity, **kwargs)
    return _make


@pytest.fixture
def gateway(monkeypatch):
    """
    TestClient bound to a fresh ConnectionManager.

    The presence interval is stretched so online_count frames do not
    interleave with the frames a test is waiting for.
    """
    from match_gateway import main

    fresh = ConnectionManager(Settings(presence_interval_seconds=3600))
    monkeypatch.setattr(main, "manager", fresh)

    with TestClient(main.app) as client:
        client.manager = fresh
        yield client
