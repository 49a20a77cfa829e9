from pydantic import BaseModel


class RoomDetailsResponse(BaseModel):
    conversationId: str
    members: int


class HealthCounters(BaseModel):
    published: int
    rejected: int
    delivered: int
    delivery_failures: int


class HealthResponse(BaseModel):
    status: str
    backend: str
    connections: int
    rooms: int
    counters: HealthCounters
