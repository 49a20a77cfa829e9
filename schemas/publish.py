from pydantic import BaseModel, field_validator
from typing import Any


class PublishRequest(BaseModel):
    conversationId: str
    message: Any

    @field_validator("conversationId")
    @classmethod
    def room_key_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("conversationId must not be empty")
        return value

    @field_validator("message")
    @classmethod
    def message_present(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("message is required")
        return value


class PublishResponse(BaseModel):
    status: str = "accepted"
