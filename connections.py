import asyncio
import json
import threading
from typing import Dict, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from logging_config import get_logger
from schemas.messages import Envelope

logger = get_logger(__name__)


class WebSocketHandle:
    """Sendable handle for one accepted WebSocket.

    Writes are serialized per connection so messages reach the client in the
    order the relay issued them.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._write_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str):
        async with self._write_lock:
            await self.websocket.send_text(text)


class ConnectionRegistry:
    """Maps live connection ids to their handles. The only way to reach a connection."""

    def __init__(self):
        self.sessions: Dict[str, WebSocketHandle] = {}
        self._lock = threading.Lock()

    def register(self, connection_id: str, handle: WebSocketHandle):
        with self._lock:
            if connection_id in self.sessions:
                logger.warning(f"Connection {connection_id} already registered, replacing handle")
            self.sessions[connection_id] = handle
        logger.debug(f"Registered connection {connection_id}")

    def unregister(self, connection_id: str):
        with self._lock:
            removed = self.sessions.pop(connection_id, None)
        if removed is not None:
            logger.debug(f"Unregistered connection {connection_id}")

    def lookup(self, connection_id: str) -> Optional[WebSocketHandle]:
        with self._lock:
            return self.sessions.get(connection_id)

    def is_reachable(self, connection_id: Optional[str]) -> bool:
        if connection_id is None:
            return False
        handle = self.lookup(connection_id)
        return handle is not None and handle.is_open

    def count(self) -> int:
        with self._lock:
            return len(self.sessions)

    async def send(self, connection_id: Optional[str], envelope: Envelope) -> bool:
        """Send an envelope to a connection.

        Returns False when the message was dropped: the connection is unknown,
        no longer open, or the write failed. Failures are logged, never raised.
        """
        handle = self.lookup(connection_id) if connection_id is not None else None
        if handle is None or not handle.is_open:
            logger.debug(f"Dropping {envelope.type.value} for unreachable connection {connection_id}")
            return False
        try:
            await handle.send_text(json.dumps(envelope.to_wire()))
        except Exception as e:
            logger.error(f"Error sending {envelope.type.value} to connection {connection_id}: {e}", exc_info=True)
            return False
        logger.debug(f"Sent {envelope.type.value} to connection {connection_id}")
        return True


connection_registry = ConnectionRegistry()
