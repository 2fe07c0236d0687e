import asyncio
from typing import Iterable, List, Optional, Tuple

from backend import Room, RoomBackend, room_backend
from connections import ConnectionRegistry, WebSocketHandle, connection_registry
from constants import ALREADY_IN_ROOM, MISSING_ROOM_ID, ROOM_ALREADY_EXISTS, ROOM_NOT_FOUND
from logging_config import get_logger
from schemas.messages import SIGNAL_TYPES, Envelope, MessageType

logger = get_logger(__name__)


class SignalingRouter:
    """Routes inbound envelopes between connections and drives room teardown.

    Each connection is unaffiliated (no room), affiliated (exactly one room) or
    closed. Routing is keyed on connection ids; the peer id handed out on
    create/join is only a token for the client.
    """

    def __init__(self, rooms: RoomBackend, connections: ConnectionRegistry):
        self.rooms = rooms
        self.connections = connections

    def on_connect(self, connection_id: str, handle: WebSocketHandle):
        self.connections.register(connection_id, handle)
        logger.info(f"Connection {connection_id} established")

    async def on_message(self, connection_id: str, envelope: Envelope):
        logger.debug(f"Received {envelope.type.value} from connection {connection_id}")

        if envelope.type is MessageType.CREATE_ROOM:
            await self.handle_create_room(connection_id, envelope)
        elif envelope.type is MessageType.JOIN_ROOM:
            await self.handle_join_room(connection_id, envelope)
        elif envelope.type in SIGNAL_TYPES:
            await self.handle_signal(connection_id, envelope)
        else:
            logger.warning(f"Unknown message type from connection {connection_id}: {envelope.raw_type or envelope.type.value}")

    async def on_close(self, connection_id: str):
        logger.info(f"Connection {connection_id} closed")
        # All registry state is dropped before the first await
        room = self.rooms.remove_participant(connection_id)
        self.connections.unregister(connection_id)
        if room is not None:
            # Peers must hear about the close even if this handler is being cancelled
            await asyncio.shield(self._notify_peer_left(connection_id, room))

    async def handle_create_room(self, connection_id: str, envelope: Envelope):
        room_id = envelope.room_id
        if not room_id:
            await self._send_error(connection_id, MISSING_ROOM_ID)
            return

        if self.rooms.get_room(room_id) is not None:
            logger.warning(f"Create room rejected: room {room_id} already exists")
            await self._send_error(connection_id, ROOM_ALREADY_EXISTS)
            return

        await self._leave_room(connection_id)

        # Another create for the same id may have run while we were leaving
        if self.rooms.create_room_if_absent(room_id, connection_id) is None:
            logger.warning(f"Create room rejected: room {room_id} already exists")
            await self._send_error(connection_id, ROOM_ALREADY_EXISTS)
            return

        peer_id = self.rooms.generate_peer_id()

        await self.connections.send(connection_id, Envelope(
            type=MessageType.ROOM_CREATED,
            room_id=room_id,
            peer_id=peer_id,
        ))
        logger.info(f"Room {room_id} created by connection {connection_id}")

    async def handle_join_room(self, connection_id: str, envelope: Envelope):
        room_id = envelope.room_id
        if not room_id:
            await self._send_error(connection_id, MISSING_ROOM_ID)
            return

        if self.rooms.get_room(room_id) is None:
            logger.warning(f"Join room failed: room {room_id} not found")
            await self._send_error(connection_id, ROOM_NOT_FOUND)
            return

        current = self.rooms.get_room_by_connection(connection_id)
        if current is not None:
            if current.id == room_id:
                await self._send_error(connection_id, ALREADY_IN_ROOM)
                return
            await self._leave_room(connection_id)

        if not self.rooms.add_participant(room_id, connection_id):
            # room emptied while we were leaving the old one
            await self._send_error(connection_id, ROOM_NOT_FOUND)
            return

        peer_id = self.rooms.generate_peer_id()
        existing = [
            participant_id
            for participant_id in self.rooms.get_participants(room_id)
            if participant_id != connection_id and self.connections.is_reachable(participant_id)
        ]

        await self.connections.send(connection_id, Envelope(
            type=MessageType.ROOM_JOINED,
            room_id=room_id,
            peer_id=peer_id,
        ))

        # Existing participants learn about the newcomer
        await self._fan_out(
            (participant_id, Envelope(type=MessageType.NEW_PEER, from_=connection_id, room_id=room_id))
            for participant_id in existing
        )
        # and the newcomer learns about each of them, in order on its own socket
        for participant_id in existing:
            await self.connections.send(connection_id, Envelope(
                type=MessageType.NEW_PEER,
                from_=participant_id,
                room_id=room_id,
            ))

        logger.info(f"Connection {connection_id} joined room {room_id} ({len(existing)} existing peers)")

    async def handle_signal(self, connection_id: str, envelope: Envelope):
        forwarded = Envelope(
            type=envelope.type,
            from_=connection_id,
            to=envelope.to,
            room_id=envelope.room_id,
            data=envelope.data,
        )
        delivered = await self.connections.send(envelope.to, forwarded)
        if delivered:
            logger.debug(f"Forwarded {envelope.type.value} from {connection_id} to {envelope.to}")

    async def _leave_room(self, connection_id: str) -> Optional[Room]:
        # Removal is atomic, so only one caller ever gets the room back and notifies
        room = self.rooms.remove_participant(connection_id)
        if room is not None:
            await self._notify_peer_left(connection_id, room)
        return room

    async def _notify_peer_left(self, connection_id: str, room: Room):
        remaining = self.rooms.get_participants(room.id)
        await self._fan_out(
            (participant_id, Envelope(type=MessageType.PEER_LEFT, from_=connection_id, room_id=room.id))
            for participant_id in remaining
            if participant_id != connection_id
        )
        logger.info(f"Connection {connection_id} left room {room.id}")

    async def _fan_out(self, deliveries: Iterable[Tuple[str, Envelope]]):
        sends: List = [self.connections.send(target, message) for target, message in deliveries]
        if sends:
            await asyncio.gather(*sends, return_exceptions=True)

    async def _send_error(self, connection_id: str, message: str):
        await self.connections.send(connection_id, Envelope(type=MessageType.ERROR, data=message))


signaling_router = SignalingRouter(room_backend, connection_registry)
