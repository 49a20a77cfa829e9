from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from functools import partial
from typing import Iterable, Optional
from routers.publish import publish_router
from routers.health import health_router
from routers.rooms import rooms_router
from backend import RedisBackend
from constants import ALLOWED_ORIGINS, RELAY_BACKEND
from relay.hub import Relay
from relay.protocol import ClientProtocolHandler
import asyncio
import json
import redis
from logging_config import get_logger, setup_logging
import os

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


def dispatch_redis_message(relay: Relay, redis_backend: RedisBackend, message: dict) -> int:
    """Broadcast one pub/sub message to this instance's members of its room."""
    if message.get("type") not in ("message", "pmessage"):
        return 0
    room_key = redis_backend.room_key_from_channel(message["channel"])
    try:
        payload = json.loads(message["data"])
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f"Error parsing message from Redis for room {room_key}: {e}")
        return 0
    return relay.router.broadcast(room_key, payload)


async def listen_to_redis_channels(relay: Relay, redis_backend: RedisBackend, retry_delay: float = 1.0):
    """Background task relaying Redis pub/sub messages to local connections."""
    logger.info("Starting Redis pub/sub listener for all rooms")
    pubsub = redis_backend.subscribe_to_rooms()
    loop = asyncio.get_running_loop()
    # Blocking get_message() runs in the thread pool, dispatch happens back on the loop
    get_message = partial(pubsub.get_message, ignore_subscribe_messages=True, timeout=1.0)
    try:
        while True:
            try:
                message = await loop.run_in_executor(None, get_message)
            except redis.RedisError as e:
                logger.error(f"Error in pubsub.get_message(): {e}", exc_info=True)
                await asyncio.sleep(retry_delay)
                continue
            if message is None:
                continue
            dispatch_redis_message(relay, redis_backend, message)
    except asyncio.CancelledError:
        logger.info("Redis listener task cancelled")
        raise
    finally:
        try:
            pubsub.close()
            logger.debug("Closed pub/sub connection")
        except redis.RedisError as e:
            logger.error(f"Error closing pub/sub: {e}")


def create_app(
    relay: Optional[Relay] = None,
    backend: str = RELAY_BACKEND,
    redis_backend: Optional[RedisBackend] = None,
    allowed_origins: Iterable[str] = ALLOWED_ORIGINS,
) -> FastAPI:
    relay = relay or Relay()
    allowed_origins = list(allowed_origins)
    if backend == "redis":
        redis_backend = redis_backend or RedisBackend()
        relay.use_dispatch(redis_backend.publish_message)
    elif backend == "memory":
        redis_backend = None
    else:
        raise ValueError(f"Unknown relay backend {backend!r}, expected 'memory' or 'redis'")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        listener = None
        if redis_backend is not None:
            await redis_backend.ping()
            listener = asyncio.create_task(listen_to_redis_channels(relay, redis_backend))
        logger.info(f"Realtime relay started (backend: {backend})")
        try:
            yield
        finally:
            if listener is not None:
                listener.cancel()
                await asyncio.gather(listener, return_exceptions=True)
            closed = relay.shutdown()
            if redis_backend is not None:
                await redis_backend.close()
            logger.info(f"Realtime relay stopped, closed {closed} connections")

    app = FastAPI(lifespan=lifespan)
    app.state.relay = relay
    app.state.backend = backend
    app.state.protocol = ClientProtocolHandler(relay, allowed_origins=allowed_origins)

    # Browsers only; WebSocket origins are checked by the protocol handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(publish_router)
    app.include_router(rooms_router)
    app.include_router(health_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Client connection. Send join_conversation frames to receive new_message events."""
        await app.state.protocol.serve(websocket)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
