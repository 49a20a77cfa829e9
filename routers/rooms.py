from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomDetailsResponse
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


@rooms_router.get("/rooms", response_model=list[RoomDetailsResponse])
async def list_rooms(request: Request):
    router = request.app.state.relay.router
    return [
        RoomDetailsResponse(conversationId=room_key, members=len(router.members(room_key)))
        for room_key in router.room_keys()
    ]


@rooms_router.get("/rooms/{room_key}", response_model=RoomDetailsResponse)
async def get_room_details(room_key: str, request: Request):
    """Members connected to this instance only."""
    members = request.app.state.relay.router.members(room_key)
    if not members:
        logger.debug(f"Room details failed: Room {room_key} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return RoomDetailsResponse(conversationId=room_key, members=len(members))
