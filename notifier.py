import httpx
from typing import Any, Optional
from constants import PUBLISH_TOKEN, RELAY_TIMEOUT, RELAY_URL
from logging_config import get_logger

logger = get_logger(__name__)


class RelayNotifier:
    """Persistence service side of the relay handoff.

    Best-effort side channel: a message is already stored when `notify` is
    called, so failures are logged and counted in `failures` but never raised.
    Clients that miss the live event see the message on their next fetch.
    """

    def __init__(
        self,
        base_url: str = RELAY_URL,
        timeout: float = RELAY_TIMEOUT,
        token: Optional[str] = PUBLISH_TOKEN,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.Client(base_url=base_url, timeout=timeout, headers=headers, transport=transport)
        self.sent = 0
        self.failures = 0

    def notify(self, conversation_id: str, message: Any) -> bool:
        try:
            response = self._client.post("/emit", json={"conversationId": conversation_id, "message": message})
        except httpx.HTTPError as e:
            self.failures += 1
            logger.error(f"Failed to emit message to relay for conversation {conversation_id}: {e}")
            return False
        if response.is_success:
            self.sent += 1
            return True
        self.failures += 1
        logger.error(
            f"Relay rejected message for conversation {conversation_id}: {response.status_code} {response.text}"
        )
        return False

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
