from typing import Any, Dict, List

from relay.connection import Connection
from relay.errors import ConnectionNotFound, DeliveryFailure, RoomLimitExceeded
from relay.registry import ConnectionRegistry
from logging_config import get_logger

logger = get_logger(__name__)

NEW_MESSAGE = "new_message"


class RoomRouter:
    """Room key -> member connections, plus fan-out.

    All operations are synchronous and run on the event loop thread, so a
    broadcast observes either the membership before a join/leave/unregister or
    the membership after it, never a half-applied change. Rooms are dropped as
    soon as their last member leaves.
    """

    def __init__(self, registry: ConnectionRegistry, max_room_size: int = 0, max_rooms_per_connection: int = 0):
        self._registry = registry
        self._rooms: Dict[str, Dict[str, Connection]] = {}
        self.max_room_size = max_room_size
        self.max_rooms_per_connection = max_rooms_per_connection
        self.broadcasts = 0
        self.delivered = 0
        self.delivery_failures = 0
        registry.add_teardown_hook(self.leave_all)

    def __len__(self):
        return len(self._rooms)

    def room_keys(self) -> List[str]:
        return list(self._rooms)

    def members(self, room_key: str) -> List[str]:
        return list(self._rooms.get(room_key, {}))

    def _open_connection(self, connection_id: str) -> Connection:
        connection = self._registry.get(connection_id)
        if connection is None or not connection.is_open:
            raise ConnectionNotFound(connection_id)
        return connection

    def join(self, connection_id: str, room_key: str) -> bool:
        """Add a connection to a room. Returns False if it was already a member."""
        connection = self._open_connection(connection_id)
        if room_key in connection.rooms:
            logger.debug(f"Connection {connection_id} already in room {room_key}")
            return False

        if self.max_rooms_per_connection and len(connection.rooms) >= self.max_rooms_per_connection:
            raise RoomLimitExceeded(connection_id, room_key, f"connection already in {len(connection.rooms)} rooms")
        members = self._rooms.get(room_key, {})
        if self.max_room_size and len(members) >= self.max_room_size:
            raise RoomLimitExceeded(connection_id, room_key, f"room is full ({len(members)}/{self.max_room_size})")

        self._rooms.setdefault(room_key, {})[connection_id] = connection
        connection.rooms.add(room_key)
        logger.info(f"Connection {connection_id} joined room {room_key} (members: {len(self._rooms[room_key])})")
        return True

    def leave(self, connection_id: str, room_key: str) -> bool:
        """Remove a connection from one room. Returns False if it was not a member."""
        members = self._rooms.get(room_key)
        if not members or connection_id not in members:
            return False
        connection = members.pop(connection_id)
        connection.rooms.discard(room_key)
        if not members:
            del self._rooms[room_key]
            logger.debug(f"Room {room_key} is empty, dropped")
        logger.info(f"Connection {connection_id} left room {room_key}")
        return True

    def leave_all(self, connection_id: str) -> List[str]:
        connection = self._registry.get(connection_id)
        if connection is None:
            return []
        left = [room_key for room_key in list(connection.rooms) if self.leave(connection_id, room_key)]
        # Memberships the router no longer knows about must not survive either
        connection.rooms.clear()
        return left

    def broadcast(self, room_key: str, payload: Any) -> int:
        """Queue `payload` as a new_message frame for every current member of `room_key`.

        Returns the number of members the frame was queued for. A member whose
        queue rejects the frame is unregistered and the others still receive it.
        Members already closing are skipped without counting a failure.
        """
        self.broadcasts += 1
        members = self._rooms.get(room_key)
        if not members:
            logger.debug(f"Broadcast to room {room_key} has no members")
            return 0

        total = len(members)
        frame = {"type": NEW_MESSAGE, "conversationId": room_key, "message": payload}
        delivered = 0
        failed = []
        for connection_id, connection in list(members.items()):
            if not connection.is_open:
                # Already being torn down; not a delivery failure
                logger.debug(f"Skipping connection {connection_id} in room {room_key}: connection is {connection.state.value}")
                continue
            try:
                connection.deliver(frame)
                delivered += 1
            except DeliveryFailure as e:
                logger.warning(f"Dropping connection {connection_id} from room {room_key}: {e}")
                failed.append(connection_id)

        for connection_id in failed:
            self.delivery_failures += 1
            self._registry.unregister(connection_id)

        self.delivered += delivered
        logger.debug(f"Broadcast to room {room_key}: queued for {delivered} of {total} members")
        return delivered

    def record_delivery_failure(self, connection_id: str, reason: str):
        """Count a write that failed after the frame left the queue."""
        self.delivery_failures += 1
        logger.warning(f"Delivery to connection {connection_id} failed: {reason}")
