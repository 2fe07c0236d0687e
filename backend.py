import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Set

from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Room:
    id: str
    participants: Set[str] = field(default_factory=set)

    def add_participant(self, connection_id: str):
        self.participants.add(connection_id)

    def remove_participant(self, connection_id: str):
        self.participants.discard(connection_id)

    def is_empty(self) -> bool:
        return not self.participants


class RoomBackend:
    """In-memory room registry.

    Owns two maps that must always agree:
    - rooms: room id -> Room
    - session_to_room: connection id -> room id

    For every (c, r) in session_to_room, rooms[r] exists and contains c. A room
    with no participants is deleted immediately. Every operation that touches
    both maps runs under a single lock so readers never see one map updated and
    the other stale.
    """

    def __init__(self):
        self.rooms: Dict[str, Room] = {}
        self.session_to_room: Dict[str, str] = {}
        self._lock = threading.Lock()
        logger.info("Initializing in-memory RoomBackend")

    def create_room(self, room_id: str) -> Room:
        room = Room(id=room_id)
        with self._lock:
            previous = self.rooms.get(room_id)
            if previous is not None:
                # Replaced room's members would otherwise point at a room object that is gone
                logger.warning(f"Replacing existing room {room_id}, evicting {len(previous.participants)} participants")
                for connection_id in previous.participants:
                    if self.session_to_room.get(connection_id) == room_id:
                        del self.session_to_room[connection_id]
            self.rooms[room_id] = room
        logger.info(f"Room {room_id} created")
        return room

    def create_room_if_absent(self, room_id: str, connection_id: str) -> Optional[Room]:
        """Create a room with connection_id as its first participant.

        Check, create and add happen under one lock hold. Returns None, leaving
        the existing room untouched, if the id is already taken.
        """
        with self._lock:
            if room_id in self.rooms:
                return None
            previous_id = self.session_to_room.get(connection_id)
            if previous_id is not None:
                self._detach(connection_id, previous_id)
            room = Room(id=room_id, participants={connection_id})
            self.rooms[room_id] = room
            self.session_to_room[connection_id] = room_id
        logger.info(f"Room {room_id} created with participant {connection_id}")
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self.rooms.get(room_id)

    def add_participant(self, room_id: str, connection_id: str) -> bool:
        """Add a connection to an existing room. Returns False if the room does not exist."""
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                logger.debug(f"Not adding {connection_id}: room {room_id} does not exist")
                return False
            previous_id = self.session_to_room.get(connection_id)
            if previous_id is not None and previous_id != room_id:
                # at most one room per connection
                self._detach(connection_id, previous_id)
            room.add_participant(connection_id)
            self.session_to_room[connection_id] = room_id
        logger.debug(f"Connection {connection_id} added to room {room_id}")
        return True

    def remove_participant(self, connection_id: str) -> Optional[Room]:
        """Remove a connection from its room, deleting the room if it empties.

        Returns the room the connection left, or None if it was not in one.
        """
        with self._lock:
            room_id = self.session_to_room.pop(connection_id, None)
            if room_id is None:
                return None
            room = self._detach(connection_id, room_id)
        logger.debug(f"Connection {connection_id} removed from room {room_id}")
        return room

    def _detach(self, connection_id: str, room_id: str) -> Optional[Room]:
        # caller holds the lock
        self.session_to_room.pop(connection_id, None)
        room = self.rooms.get(room_id)
        if room is None:
            return None
        room.remove_participant(connection_id)
        if room.is_empty():
            del self.rooms[room_id]
            logger.info(f"Room {room_id} is empty, deleted")
        return room

    def get_room_by_connection(self, connection_id: str) -> Optional[Room]:
        with self._lock:
            room_id = self.session_to_room.get(connection_id)
            if room_id is None:
                return None
            return self.rooms.get(room_id)

    def get_participants(self, room_id: str) -> FrozenSet[str]:
        """Snapshot of a room's participants, safe to iterate while others edit the room."""
        with self._lock:
            room = self.rooms.get(room_id)
            return frozenset(room.participants) if room else frozenset()

    def generate_peer_id(self) -> str:
        return str(uuid.uuid4())

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "rooms": len(self.rooms),
                "participants": len(self.session_to_room),
            }


room_backend = RoomBackend()
