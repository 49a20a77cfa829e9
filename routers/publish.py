import json
from fastapi import APIRouter, HTTPException, Request
from relay.errors import InvalidRequest, RelayUnavailable, Unauthorized
from schemas.publish import PublishResponse
from logging_config import get_logger

logger = get_logger(__name__)

publish_router = APIRouter(tags=["publish"])


@publish_router.post("/emit", response_model=PublishResponse)
async def emit(request: Request):
    # POST /emit Body: { "conversationId": "conv-42", "message": {...} }
    # Response 200: { "status": "accepted" } - accepted for best-effort delivery, not delivered
    ingestion = request.app.state.relay.ingestion
    client_host = request.client.host if request.client else "unknown"

    try:
        ingestion.authorize(request.headers.get("authorization"))
    except Unauthorized as e:
        logger.warning(f"Publish rejected from {client_host}: {e}")
        raise HTTPException(status_code=401, detail=str(e))

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None

    try:
        await ingestion.accept(body)
    except InvalidRequest as e:
        logger.warning(f"Publish rejected from {client_host}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except RelayUnavailable as e:
        logger.error(f"Publish from {client_host} could not be distributed: {e}")
        raise HTTPException(status_code=503, detail="Relay backend unavailable")

    return PublishResponse()
