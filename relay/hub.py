from typing import Any, Callable, Dict, Optional

from constants import MAX_ROOM_SIZE, MAX_ROOMS_PER_CONNECTION, PUBLISH_TOKEN, SEND_QUEUE_SIZE
from relay.ingestion import Ingestion
from relay.registry import ConnectionRegistry
from relay.rooms import RoomRouter


class Relay:
    """The relay state of one process: registry, room router and ingestion wired together.

    Built per application instead of living in module globals, so tests can run
    independent relays side by side.
    """

    def __init__(
        self,
        max_room_size: int = MAX_ROOM_SIZE,
        max_rooms_per_connection: int = MAX_ROOMS_PER_CONNECTION,
        send_queue_size: int = SEND_QUEUE_SIZE,
        publish_token: Optional[str] = PUBLISH_TOKEN,
        dispatch: Optional[Callable[[str, Any], Any]] = None,
    ):
        self.registry = ConnectionRegistry(send_queue_size=send_queue_size)
        self.router = RoomRouter(
            self.registry,
            max_room_size=max_room_size,
            max_rooms_per_connection=max_rooms_per_connection,
        )
        self.ingestion = Ingestion(dispatch or self.router.broadcast, publish_token=publish_token)

    def use_dispatch(self, dispatch: Callable[[str, Any], Any]):
        """Route accepted publishes somewhere other than the local router (e.g. Redis)."""
        self.ingestion.dispatch = dispatch

    def stats(self) -> Dict[str, Any]:
        return {
            "connections": len(self.registry),
            "rooms": len(self.router),
            "counters": {
                "published": self.ingestion.published,
                "rejected": self.ingestion.rejected,
                "delivered": self.router.delivered,
                "delivery_failures": self.router.delivery_failures,
            },
        }

    def shutdown(self) -> int:
        return self.registry.unregister_all()
