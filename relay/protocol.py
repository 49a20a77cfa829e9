import asyncio
import uuid
from typing import Iterable, Optional

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError

from relay.connection import Connection
from relay.errors import ConnectionNotFound, DeliveryFailure, DuplicateConnection, RoomLimitExceeded
from relay.hub import Relay
from schemas.events import JOIN_CONVERSATION, LEAVE_CONVERSATION, PING, ClientFrame
from logging_config import get_logger

logger = get_logger(__name__)


class ClientProtocolHandler:
    """Runs the client side of the protocol for each WebSocket.

    Every connection gets two tasks: a reader that turns client frames into
    router operations, and a writer that drains the connection's outbound
    queue. Whichever finishes first ends the session and the connection is
    unregistered before the socket is closed.
    """

    def __init__(self, relay: Relay, allowed_origins: Iterable[str] = ()):
        self.relay = relay
        self.allowed_origins = set(allowed_origins)

    def origin_allowed(self, origin: Optional[str]) -> bool:
        # Non-browser clients send no Origin header
        if not origin or "*" in self.allowed_origins:
            return True
        return origin in self.allowed_origins

    async def serve(self, websocket: WebSocket):
        origin = websocket.headers.get("origin")
        if not self.origin_allowed(origin):
            logger.warning(f"WebSocket connection rejected: origin {origin} not allowed")
            await websocket.close(code=1008, reason="Origin not allowed")
            return

        await websocket.accept()
        connection_id = str(uuid.uuid4())
        try:
            connection = self.relay.registry.register(connection_id)
        except DuplicateConnection as e:
            logger.error(f"WebSocket connection dropped: {e}")
            await websocket.close(code=1011, reason="Duplicate connection")
            return
        logger.info(f"WebSocket: client connected {connection_id}")

        self.reply(connection, {"type": "connected", "connection_id": connection_id})
        reader = asyncio.create_task(self._read_loop(websocket, connection))
        writer = asyncio.create_task(self._write_loop(websocket, connection))
        try:
            await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self.relay.registry.unregister(connection_id)
            for task in (reader, writer):
                task.cancel()
            await asyncio.gather(reader, writer, return_exceptions=True)
            if websocket.client_state == WebSocketState.CONNECTED and websocket.application_state == WebSocketState.CONNECTED:
                try:
                    await websocket.close()
                except (RuntimeError, OSError) as e:
                    logger.debug(f"Error closing WebSocket for connection {connection_id}: {e}")
            logger.info(f"WebSocket: client disconnected {connection_id}")

    async def _read_loop(self, websocket: WebSocket, connection: Connection):
        message_count = 0
        while True:
            try:
                message = await websocket.receive()
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug(f"Receive failed for connection {connection.connection_id}: {e}")
                break
            if message["type"] == "websocket.disconnect":
                logger.debug(f"Connection {connection.connection_id} closed by client (code {message.get('code')})")
                break

            message_count += 1
            data = message.get("text")
            if data is None and message.get("bytes") is not None:
                data = message["bytes"].decode("utf-8", errors="replace")
            logger.debug(f"Received frame #{message_count} from connection {connection.connection_id}")
            self.handle_frame(connection, data or "")

        # Leave every room now, before any later broadcast can target this connection
        self.relay.registry.unregister(connection.connection_id)

    async def _write_loop(self, websocket: WebSocket, connection: Connection):
        while True:
            frame = await connection.next_frame()
            if frame is None:
                return
            try:
                await websocket.send_json(frame)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                self.relay.router.record_delivery_failure(connection.connection_id, str(e) or type(e).__name__)
                return

    def handle_frame(self, connection: Connection, data: str):
        """Apply one client frame. Bad frames get an error reply and never end the session."""
        try:
            frame = ClientFrame.model_validate_json(data)
        except ValidationError:
            self.reply_error(connection, "invalid_frame", "Frames must be JSON objects with a string type")
            return

        if frame.type == JOIN_CONVERSATION:
            self._join(connection, frame.conversationId)
        elif frame.type == LEAVE_CONVERSATION:
            self._leave(connection, frame.conversationId)
        elif frame.type == PING:
            self.reply(connection, {"type": "pong"})
        else:
            self.reply_error(connection, "unknown_type", f"Unknown frame type {frame.type}")

    def _join(self, connection: Connection, room_key: Optional[str]):
        if not room_key or not room_key.strip():
            self.reply_error(connection, "missing_conversation", "conversationId is required")
            return
        try:
            self.relay.router.join(connection.connection_id, room_key)
        except RoomLimitExceeded as e:
            logger.info(str(e))
            self.reply_error(connection, "room_limit", e.reason)
            return
        except ConnectionNotFound:
            return
        self.reply(connection, {"type": "joined", "conversationId": room_key})

    def _leave(self, connection: Connection, room_key: Optional[str]):
        if not room_key or not room_key.strip():
            self.reply_error(connection, "missing_conversation", "conversationId is required")
            return
        self.relay.router.leave(connection.connection_id, room_key)
        self.reply(connection, {"type": "left", "conversationId": room_key})

    def reply(self, connection: Connection, frame: dict):
        if not connection.is_open:
            return
        try:
            connection.deliver(frame)
        except DeliveryFailure as e:
            self.relay.router.record_delivery_failure(connection.connection_id, e.reason)
            self.relay.registry.unregister(connection.connection_id)

    def reply_error(self, connection: Connection, code: str, detail: str):
        self.reply(connection, {"type": "error", "code": code, "detail": detail})
