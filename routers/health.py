from fastapi import APIRouter, Request
from schemas.rooms import HealthResponse

health_router = APIRouter(tags=["health"])


@health_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Liveness plus the ingestion and delivery counters operators alert on."""
    relay = request.app.state.relay
    return HealthResponse(status="ok", backend=request.app.state.backend, **relay.stats())
