import hmac
import inspect
from typing import Any, Callable, Optional

from pydantic import ValidationError

from relay.errors import InvalidRequest, Unauthorized
from schemas.publish import PublishRequest
from logging_config import get_logger

logger = get_logger(__name__)


class Ingestion:
    """Entry point for messages the persistence service has already stored.

    Transport agnostic: the HTTP route feeds raw bodies to `accept`, in-process
    callers may use `publish` directly. `dispatch` is the room router's
    broadcast in single-instance mode, or a Redis publish when fan-out is
    distributed. Acceptance means queued for best-effort delivery only.

    Room keys are not checked against real conversations. The only trust check
    is the optional shared publish token; without one, any caller that can
    reach the relay may publish to any room.
    """

    def __init__(self, dispatch: Callable[[str, Any], Any], publish_token: Optional[str] = None):
        self.dispatch = dispatch
        self.publish_token = publish_token
        self.published = 0
        self.rejected = 0

    def authorize(self, authorization: Optional[str]):
        """Check an `Authorization: Bearer <token>` header value against the publish token."""
        if not self.publish_token:
            return
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), self.publish_token):
            self.rejected += 1
            logger.warning("Rejected publish request with missing or invalid token")
            raise Unauthorized("Invalid publish token")

    async def accept(self, body: Any) -> PublishRequest:
        try:
            request = PublishRequest.model_validate(body)
        except ValidationError as e:
            self.rejected += 1
            fields = ", ".join(".".join(str(p) for p in err["loc"]) or "body" for err in e.errors())
            logger.info(f"Rejected publish request, invalid fields: {fields}")
            raise InvalidRequest(f"Invalid publish request: {fields}")
        await self._forward(request.conversationId, request.message)
        return request

    async def publish(self, room_key: str, payload: Any):
        if not isinstance(room_key, str) or not room_key.strip():
            self.rejected += 1
            raise InvalidRequest("Invalid publish request: conversationId")
        if payload is None:
            self.rejected += 1
            raise InvalidRequest("Invalid publish request: message")
        await self._forward(room_key, payload)

    async def _forward(self, room_key: str, payload: Any):
        logger.info(f"Emitting message to room {room_key}")
        # Local broadcast returns a count, a Redis publish returns a coroutine
        result = self.dispatch(room_key, payload)
        if inspect.isawaitable(result):
            await result
        self.published += 1
