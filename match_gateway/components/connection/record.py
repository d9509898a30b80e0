"""
Connection Record.

Passive per-connection data: identity, pairing state, partner reference and
the outbound channel. Mutated only by the matching components while the
lifecycle manager holds the state lock.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from match_gateway.components.core.constants import OutboundEvent


class ConnectionState(str, Enum):
    """Pairing state of a connection. Exactly one holds at any time."""

    IDLE = "idle"
    WAITING = "waiting"
    PAIRED = "paired"


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    """A single frame queued for delivery to a client."""

    event: OutboundEvent
    data: Any = None

    def to_frame(self) -> dict[str, Any]:
        """Wire representation: {"event": ..., "data": ...}."""
        frame: dict[str, Any] = {"event": self.event.value}
        if self.data is not None:
            frame["data"] = self.data
        return frame


def new_connection_id() -> str:
    """Opaque unique handle for a connection."""
    return uuid.uuid4().hex


@dataclass(eq=False)
class Connection:
    """
    One live transport session.

    Attributes:
        identity: Verified identity (email) extracted from the token.
        id: Opaque handle assigned at connect time.
        state: IDLE, WAITING or PAIRED.
        partner_id: Id of the paired connection, None unless PAIRED.
        initiator: Whether this side originates the offer in its pairing.
        outbox: Bounded queue drained by the connection's writer task.
        connected_at: Unix timestamp of registration.
    """

    identity: str
    id: str = field(default_factory=new_connection_id)
    state: ConnectionState = ConnectionState.IDLE
    partner_id: str | None = None
    initiator: bool = False
    outbox: asyncio.Queue[OutboundMessage] = field(
        default_factory=lambda: asyncio.Queue(maxsize=256)
    )
    connected_at: float = field(default_factory=time.time)
    dropped_frames: int = 0

    @property
    def is_paired(self) -> bool:
        return self.state is ConnectionState.PAIRED

    def send(self, event: OutboundEvent, data: Any = None) -> bool:
        """
        Queue a frame for this connection without blocking.

        Returns:
            False if the outbox is full (the frame is dropped and the
            caller should treat the connection as dead).
        """
        try:
            self.outbox.put_nowait(OutboundMessage(event, data))
        except asyncio.QueueFull:
            self.dropped_frames += 1
            return False
        return True

    def __repr__(self) -> str:
        return (
            f"Connection(id={self.id[:8]}, state={self.state.value}, "
            f"partner={self.partner_id[:8] if self.partner_id else None})"
        )
