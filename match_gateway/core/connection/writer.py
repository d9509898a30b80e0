"""
Outbound Writer.

One task per connection drains its outbox to the WebSocket, so the state
machine never awaits a socket send while holding the state lock.
"""

from __future__ import annotations

import asyncio
from typing import Callable, TYPE_CHECKING

from starlette.websockets import WebSocketState

from match_shared.config.logging import get_logger
from match_shared.infrastructure.correlation import bind_connection_id
from match_gateway.components.core.constants import WSConstants

if TYPE_CHECKING:
    from fastapi import WebSocket
    from match_gateway.components.connection.record import Connection

logger = get_logger(__name__)


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette does not expose transitional states, so a socket may briefly
    look connected after a disconnect was initiated.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class OutboundWriter:
    """
    Drains a connection's outbox to its WebSocket.

    A send that fails or exceeds `send_timeout` stops the writer and
    reports the connection through `on_failure`.
    """

    def __init__(
        self,
        websocket: "WebSocket",
        conn: "Connection",
        on_failure: Callable[["Connection"], None],
        send_timeout: float = WSConstants.WRITER_SEND_TIMEOUT,
    ) -> None:
        self._websocket = websocket
        self._conn = conn
        self._on_failure = on_failure
        self._send_timeout = send_timeout
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(
                self._run(), name=f"outbound_writer_{self._conn.id[:8]}"
            )
        return self._task

    async def _run(self) -> None:
        bind_connection_id(self._conn.id)
        outbox = self._conn.outbox
        while True:
            message = await outbox.get()
            try:
                if not is_ws_connected(self._websocket):
                    self._on_failure(self._conn)
                    return
                await asyncio.wait_for(
                    self._websocket.send_json(message.to_frame()),
                    timeout=self._send_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Outbound send timed out", timeout=self._send_timeout)
                self._on_failure(self._conn)
                return
            except (ConnectionError, RuntimeError, OSError) as e:
                logger.debug("Outbound send failed", error=type(e).__name__)
                self._on_failure(self._conn)
                return
            finally:
                outbox.task_done()

    async def drain(self, timeout: float = WSConstants.SHUTDOWN_DRAIN_TIMEOUT) -> bool:
        """
        Wait until every queued frame has been handed to the socket.

        Returns:
            False if the outbox did not empty within `timeout`.
        """
        if not self.running:
            return self._conn.outbox.empty()
        try:
            await asyncio.wait_for(self._conn.outbox.join(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def stop(self) -> None:
        """Cancel the writer task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning("Outbound writer ended with error", error=str(e))
