from pydantic import BaseModel, ConfigDict
from typing import Optional

JOIN_CONVERSATION = "join_conversation"
LEAVE_CONVERSATION = "leave_conversation"
PING = "ping"


class ClientFrame(BaseModel):
    """A JSON text frame sent by a client over the WebSocket."""

    model_config = ConfigDict(extra="ignore")

    type: str
    conversationId: Optional[str] = None
