import asyncio
from enum import Enum
from typing import Optional, Set

from relay.errors import DeliveryFailure
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


_ALLOWED_TRANSITIONS = {
    ConnectionState.OPEN: {ConnectionState.CLOSING, ConnectionState.CLOSED},
    ConnectionState.CLOSING: {ConnectionState.CLOSED},
    ConnectionState.CLOSED: set(),
}


class Connection:
    """One live client session.

    Outbound frames are never written to the transport directly. They are queued
    on `outbox` and drained by the connection's writer task, so a stalled client
    only ever fills its own queue.
    """

    def __init__(self, connection_id: str, queue_size: int = 100):
        self.connection_id = connection_id
        self.rooms: Set[str] = set()
        self.state = ConnectionState.OPEN
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

    def __repr__(self):
        return f"Connection({self.connection_id!r}, state={self.state.value}, rooms={len(self.rooms)})"

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def transition_to(self, new_state: ConnectionState):
        if new_state == self.state:
            return
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(
                f"Illegal transition {self.state.value} -> {new_state.value} for connection {self.connection_id}"
            )
        logger.debug(f"Connection {self.connection_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def deliver(self, frame: dict):
        """Queue a frame for the writer task."""
        if not self.is_open:
            raise DeliveryFailure(self.connection_id, f"connection is {self.state.value}")
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            raise DeliveryFailure(self.connection_id, "send queue full")

    async def next_frame(self) -> Optional[dict]:
        """Wait for the next queued frame. None means the connection was closed."""
        return await self.outbox.get()

    def close(self):
        """Mark closed, drop any backlog and wake the writer task with the close sentinel."""
        self.transition_to(ConnectionState.CLOSED)
        while not self.outbox.empty():
            self.outbox.get_nowait()
        self.outbox.put_nowait(None)
