from typing import Callable, Dict, List, Optional

from relay.connection import Connection, ConnectionState
from relay.errors import DuplicateConnection
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """Every live connection of one relay process, keyed by connection id.

    Room membership is not stored here. Components that hold per-connection
    state register a teardown hook and are called from `unregister` while the
    connection is still resolvable, before it is closed and discarded.
    """

    def __init__(self, send_queue_size: int = 100):
        self.send_queue_size = send_queue_size
        self._connections: Dict[str, Connection] = {}
        self._teardown_hooks: List[Callable[[str], None]] = []
        self.total_registered = 0

    def __len__(self):
        return len(self._connections)

    def __contains__(self, connection_id: str):
        return connection_id in self._connections

    def add_teardown_hook(self, hook: Callable[[str], None]):
        self._teardown_hooks.append(hook)

    def register(self, connection_id: str) -> Connection:
        if connection_id in self._connections:
            logger.error(f"Refusing to register duplicate connection {connection_id}")
            raise DuplicateConnection(connection_id)
        connection = Connection(connection_id, queue_size=self.send_queue_size)
        self._connections[connection_id] = connection
        self.total_registered += 1
        logger.debug(f"Registered connection {connection_id} (live connections: {len(self._connections)})")
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def connection_ids(self) -> List[str]:
        return list(self._connections)

    def unregister(self, connection_id: str) -> bool:
        """Tear a connection down. Returns False if it was already gone."""
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug(f"Connection {connection_id} already unregistered")
            return False

        connection.transition_to(ConnectionState.CLOSING)
        for hook in self._teardown_hooks:
            hook(connection_id)
        del self._connections[connection_id]
        connection.close()
        logger.debug(f"Unregistered connection {connection_id} (live connections: {len(self._connections)})")
        return True

    def unregister_all(self) -> int:
        connection_ids = self.connection_ids()
        for connection_id in connection_ids:
            self.unregister(connection_id)
        return len(connection_ids)
