import redis
import redis.asyncio
import json
from typing import Any, Optional
from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_SOCKET_TIMEOUT
from redis_keys import REDIS_ROOM_CHANNEL, REDIS_ROOM_PATTERN
from relay.errors import RelayUnavailable
from logging_config import get_logger

logger = get_logger(__name__)


class RedisBackend:
    """Distributes accepted publishes to every relay instance over Redis pub/sub.

    Each instance keeps its own WebSocket connections in memory. Ingestion on
    any instance publishes to the room's channel and every instance's listener
    broadcasts to its local members.

    Publishing goes through the async client so a slow Redis never holds the
    event loop. The pub/sub side stays blocking and is polled from the thread
    pool by the listener task.
    """

    def __init__(
        self,
        redis_client: Optional[redis.asyncio.Redis] = None,
        pubsub_client: Optional[redis.Redis] = None,
    ):
        logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
        self.redis_client = redis_client or redis.asyncio.Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            password=REDIS_PASSWORD,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
        )
        # Separate connection for pub/sub (required by Redis)
        self.pubsub_client = pubsub_client or redis.Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            password=REDIS_PASSWORD,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
        )

    async def ping(self):
        try:
            await self.redis_client.ping()
            self.pubsub_client.ping()
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
            raise
        logger.info(f"Redis clients connected successfully to {REDIS_HOST}:{REDIS_PORT}")

    async def close(self):
        try:
            await self.redis_client.aclose()
            self.pubsub_client.close()
        except redis.RedisError as e:
            logger.error(f"Error closing Redis clients: {e}")

    def get_room_channel_name(self, room_key: str) -> str:
        """Get the Redis pub/sub channel name for a room."""
        return REDIS_ROOM_CHANNEL.format(slug=room_key)

    def room_key_from_channel(self, channel: str) -> str:
        prefix = REDIS_ROOM_CHANNEL.format(slug="")
        return channel[len(prefix):] if channel.startswith(prefix) else channel

    async def publish_message(self, room_key: str, payload: Any) -> int:
        """Publish a payload to the room's Redis pub/sub channel."""
        channel = self.get_room_channel_name(room_key)
        try:
            subscribers = await self.redis_client.publish(channel, json.dumps(payload))
        except redis.RedisError as e:
            logger.error(f"Failed to publish to room {room_key} channel {channel}: {e}")
            raise RelayUnavailable(f"Redis publish failed for room {room_key}") from e
        logger.debug(f"Published message to room {room_key} channel {channel}, {subscribers} subscribers")
        return subscribers

    def subscribe_to_rooms(self):
        """Create one pattern subscriber covering every room channel."""
        logger.debug(f"Subscribing to Redis pattern {REDIS_ROOM_PATTERN}")
        pubsub = self.pubsub_client.pubsub()
        pubsub.psubscribe(REDIS_ROOM_PATTERN)
        return pubsub
