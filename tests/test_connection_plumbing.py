"""
Tests for the transport plumbing: heartbeats, cleanup, outbound writers
and the ConnectionManager facade.
"""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from starlette.websockets import WebSocketState

from match_shared.config.settings import Settings
from match_gateway.components.connection.heartbeat import HeartbeatTracker, handle_heartbeat
from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.components.core.constants import OutboundEvent, WSCloseCode
from match_gateway.components.metrics.collector import MetricsCollector
from match_gateway.connection_manager import ConnectionManager
from match_gateway.core.connection.cleanup import ConnectionCleanup
from match_gateway.core.connection.writer import OutboundWriter


def mock_websocket() -> MagicMock:
    ws = MagicMock()
    ws.client_state = WebSocketState.CONNECTED
    ws.application_state = WebSocketState.CONNECTED
    ws.send_json = AsyncMock()
    ws.send_text = AsyncMock()
    ws.close = AsyncMock()
    return ws


class TestHeartbeatTracker:

    def test_zero_timeout_disables_stale_detection(self):
        tracker = HeartbeatTracker(timeout_seconds=0)
        tracker.record("quiet", timestamp=time.time() - 86400)

        assert not tracker.enabled
        assert not tracker.is_stale("quiet")
        assert tracker.cleanup_stale() == []
        assert tracker.tracked_count == 1

    def test_recent_activity_is_not_stale(self):
        tracker = HeartbeatTracker(timeout_seconds=60)
        tracker.record("c1")
        assert not tracker.is_stale("c1")
        assert tracker.is_stale("unknown")

    def test_cleanup_stale_removes_once(self):
        tracker = HeartbeatTracker(timeout_seconds=60)
        tracker.record("old", timestamp=time.time() - 1000)
        tracker.record("fresh")

        assert tracker.cleanup_stale() == ["old"]
        assert tracker.cleanup_stale() == []
        assert tracker.tracked_count == 1

    def test_stats(self):
        tracker = HeartbeatTracker(timeout_seconds=30)
        tracker.record("c1", timestamp=time.time() - 10)
        stats = tracker.get_stats()
        assert stats["tracked_connections"] == 1
        assert stats["timeout_seconds"] == 30
        assert stats["oldest_heartbeat_age"] >= 10

    @pytest.mark.asyncio
    async def test_ping_answered_with_pong(self):
        ws = mock_websocket()
        assert await handle_heartbeat(ws, "ping") is True
        assert await handle_heartbeat(ws, '{"type":"ping"}') is True
        assert await handle_heartbeat(ws, '{"event":"join"}') is False
        assert ws.send_text.await_count == 2


class TestConnectionCleanup:

    def _cleanup(self, tracker=None, max_dead=10):
        close = AsyncMock()
        disconnect = AsyncMock()
        metrics = MetricsCollector()
        cleanup = ConnectionCleanup(
            metrics=metrics,
            heartbeat_tracker=tracker or HeartbeatTracker(timeout_seconds=60),
            close_callback=close,
            disconnect_callback=disconnect,
            max_dead_connections=max_dead,
        )
        return cleanup, close, disconnect, metrics

    @pytest.mark.asyncio
    async def test_stale_connections_closed_and_disconnected(self):
        tracker = HeartbeatTracker(timeout_seconds=60)
        tracker.record("stale", timestamp=time.time() - 1000)
        tracker.record("alive")
        cleanup, close, disconnect, metrics = self._cleanup(tracker)

        assert await cleanup.cleanup_stale_connections() == 1
        close.assert_awaited_once_with("stale", WSCloseCode.GOING_AWAY, "Heartbeat timeout")
        disconnect.assert_awaited_once_with("stale")
        assert metrics.get_snapshot()["connections_stale_cleaned"] == 1

    @pytest.mark.asyncio
    async def test_dead_connections_cleaned(self):
        cleanup, close, disconnect, metrics = self._cleanup()
        conn = ConnectionRegistry().register("a@u.edu")

        cleanup.mark_dead_connection(conn)
        cleanup.mark_dead_connection(conn)
        assert cleanup.dead_connections_count == 1

        assert await cleanup.cleanup_dead_connections() == 1
        close.assert_awaited_once_with(conn.id, WSCloseCode.SERVER_OVERLOADED, "Send failure")
        disconnect.assert_awaited_once_with(conn.id)
        assert cleanup.dead_connections_count == 0
        assert metrics.get_snapshot()["connections_dead_cleaned"] == 1

    @pytest.mark.asyncio
    async def test_close_failure_still_disconnects(self):
        cleanup, close, disconnect, _ = self._cleanup()
        close.side_effect = RuntimeError("already closed")
        conn = ConnectionRegistry().register("a@u.edu")
        cleanup.mark_dead_connection(conn)

        assert await cleanup.cleanup_dead_connections() == 1
        disconnect.assert_awaited_once_with(conn.id)

    def test_dead_tracking_is_bounded(self):
        cleanup, _, _, _ = self._cleanup(max_dead=2)
        registry = ConnectionRegistry()
        for i in range(3):
            cleanup.mark_dead_connection(registry.register(f"u{i}@u.edu"))
        assert cleanup.dead_connections_count == 2


class TestOutboundWriter:

    @pytest.mark.asyncio
    async def test_frames_sent_in_order(self):
        ws = mock_websocket()
        conn = ConnectionRegistry().register("a@u.edu")
        writer = OutboundWriter(ws, conn, on_failure=MagicMock())
        writer.start()

        conn.send(OutboundEvent.WAITING)
        conn.send(OutboundEvent.CHAT, "hi")
        assert await writer.drain(timeout=1.0) is True
        await writer.stop()

        sent = [call.args[0] for call in ws.send_json.await_args_list]
        assert sent == [{"event": "waiting"}, {"event": "chat", "data": "hi"}]
        assert not writer.running

    @pytest.mark.asyncio
    async def test_send_failure_reports_connection(self):
        ws = mock_websocket()
        ws.send_json.side_effect = RuntimeError("socket closed")
        conn = ConnectionRegistry().register("a@u.edu")
        on_failure = MagicMock()
        writer = OutboundWriter(ws, conn, on_failure=on_failure)
        task = writer.start()

        conn.send(OutboundEvent.WAITING)
        await asyncio.wait_for(task, timeout=1.0)

        on_failure.assert_called_once_with(conn)

    @pytest.mark.asyncio
    async def test_disconnected_socket_reports_connection(self):
        ws = mock_websocket()
        ws.client_state = WebSocketState.DISCONNECTED
        conn = ConnectionRegistry().register("a@u.edu")
        on_failure = MagicMock()
        task = OutboundWriter(ws, conn, on_failure=on_failure).start()

        conn.send(OutboundEvent.WAITING)
        await asyncio.wait_for(task, timeout=1.0)

        on_failure.assert_called_once_with(conn)
        ws.send_json.assert_not_awaited()


class TestConnectionManager:

    @pytest.mark.asyncio
    async def test_match_flows_through_writers(self):
        manager = ConnectionManager(Settings())
        ws_a, ws_b = mock_websocket(), mock_websocket()
        a = await manager.connect(ws_a, "a@u.edu")
        b = await manager.connect(ws_b, "b@u.edu")

        await manager.dispatch(a.id, "join")
        await manager.dispatch(b.id, "join")
        await manager.dispatch(a.id, "offer", {"sdp": "v=0"})
        await manager.shutdown()

        sent_b = [call.args[0] for call in ws_b.send_json.await_args_list]
        assert {"event": "matched", "data": {"initiator": True}} in sent_b
        assert {"event": "offer", "data": {"sdp": "v=0"}} in sent_b
        assert manager.total_connections == 0

    @pytest.mark.asyncio
    async def test_disconnect_notifies_partner_and_counts(self):
        manager = ConnectionManager(Settings())
        a = await manager.connect(mock_websocket(), "a@u.edu")
        b = await manager.connect(mock_websocket(), "b@u.edu")
        await manager.dispatch(a.id, "join")
        await manager.dispatch(b.id, "join")

        assert await manager.disconnect(a.id) is a
        assert await manager.disconnect(a.id) is None
        assert not b.is_paired

        snapshot = manager.metrics.get_snapshot()
        assert snapshot["connections_accepted"] == 2
        assert snapshot["connections_closed"] == 1
        assert snapshot["matches_partner_left"] == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_connection_cap_rejects(self):
        manager = ConnectionManager(Settings(ws_max_total_connections=1))
        await manager.connect(mock_websocket(), "a@u.edu")
        with pytest.raises(ConnectionError):
            await manager.connect(mock_websocket(), "b@u.edu")
        assert manager.metrics.get_snapshot()["connections_rejected_limit"] == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_closes_with_going_away(self):
        manager = ConnectionManager(Settings())
        ws = mock_websocket()
        await manager.connect(ws, "a@u.edu")

        assert await manager.shutdown() == 1
        ws.close.assert_awaited_once_with(code=WSCloseCode.GOING_AWAY, reason="Server shutdown")
        assert manager.is_shutting_down()
        with pytest.raises(ConnectionError):
            await manager.connect(mock_websocket(), "b@u.edu")

    @pytest.mark.asyncio
    async def test_silent_paired_session_survives_cleanup(self):
        """With default settings a quiet call is never reaped by the stale sweep."""
        manager = ConnectionManager(Settings())
        ws_a, ws_b = mock_websocket(), mock_websocket()
        a = await manager.connect(ws_a, "a@u.edu")
        b = await manager.connect(ws_b, "b@u.edu")
        await manager.dispatch(a.id, "join")
        await manager.dispatch(b.id, "join")

        an_hour_later = time.time() + 3600
        with patch("match_gateway.components.connection.heartbeat.time.time", return_value=an_hour_later):
            assert await manager.cleanup_stale_connections() == 0

        assert a.is_paired and b.is_paired
        ws_a.close.assert_not_awaited()
        ws_b.close.assert_not_awaited()
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_stats(self):
        manager = ConnectionManager(Settings())
        a = await manager.connect(mock_websocket(), "a@u.edu")
        await manager.dispatch(a.id, "join")

        stats = await manager.get_stats()
        assert stats["total_connections"] == 1
        assert stats["waiting"] == 1
        assert stats["paired"] == 0
        assert stats["dead_connections_pending"] == 0
        assert "heartbeat_stats" in stats
        await manager.shutdown()
