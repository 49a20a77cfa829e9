import asyncio
import queue
from typing import Any, List, Optional, Tuple

import redis

from relay.connection import Connection


def drain(connection: Connection) -> List[Any]:
    """Pop every queued outbound frame without running a writer task."""
    frames = []
    while not connection.outbox.empty():
        frames.append(connection.outbox.get_nowait())
    return frames


class FakePubSub:
    def __init__(self, failures: int = 0):
        self.messages: queue.Queue = queue.Queue()
        self.patterns: List[str] = []
        self.closed = False
        # get_message raises this many times before it starts returning messages
        self.failures = failures
        self.calls = 0

    def psubscribe(self, pattern: str):
        self.patterns.append(pattern)

    def get_message(self, ignore_subscribe_messages: bool = False, timeout: float = 0.0):
        self.calls += 1
        if self.failures:
            self.failures -= 1
            raise redis.ConnectionError("Connection reset by peer")
        try:
            return self.messages.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        self.closed = True


class FakeRedis:
    """The blocking pub/sub side of redis.Redis."""

    def __init__(self, pubsub: Optional[FakePubSub] = None):
        self._pubsub = pubsub or FakePubSub()
        self.closed = False

    def ping(self) -> bool:
        return True

    def pubsub(self) -> FakePubSub:
        return self._pubsub

    def close(self):
        self.closed = True


class FakeAsyncRedis:
    """The publishing side of redis.asyncio.Redis, looped back into a FakePubSub."""

    def __init__(self, pubsub: FakePubSub, delay: float = 0.0):
        self._pubsub = pubsub
        self.delay = delay
        self.published: List[Tuple[str, str]] = []
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def publish(self, channel: str, data: str) -> int:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.published.append((channel, data))
        self._pubsub.messages.put(
            {"type": "pmessage", "pattern": "relay:room:*", "channel": channel, "data": data}
        )
        return 1

    async def aclose(self):
        self.closed = True
