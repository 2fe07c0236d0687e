import json

import pytest

from backend import RoomBackend
from connections import ConnectionRegistry
from signaling import SignalingRouter


class FakeHandle:
    """Stands in for a WebSocketHandle; records decoded envelopes it was sent."""

    def __init__(self, is_open=True, fail=False):
        self.is_open = is_open
        self.fail = fail
        self.sent = []
        # when set to an asyncio.Event, writes wait for it before completing
        self.gate = None

    async def send_text(self, text):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("write failed")
        self.sent.append(json.loads(text))

    def of_type(self, message_type):
        return [message for message in self.sent if message["type"] == message_type]


@pytest.fixture
def rooms():
    return RoomBackend()


@pytest.fixture
def connections():
    return ConnectionRegistry()


@pytest.fixture
def router(rooms, connections):
    return SignalingRouter(rooms, connections)


@pytest.fixture
def connect(router):
    def _connect(connection_id, **kwargs):
        handle = FakeHandle(**kwargs)
        router.on_connect(connection_id, handle)
        return handle
    return _connect


def assert_registry_consistent(rooms: RoomBackend):
    for connection_id, room_id in rooms.session_to_room.items():
        assert room_id in rooms.rooms
        assert connection_id in rooms.rooms[room_id].participants
    for room_id, room in rooms.rooms.items():
        assert room.participants, f"empty room {room_id} still registered"
        for connection_id in room.participants:
            assert rooms.session_to_room.get(connection_id) == room_id
