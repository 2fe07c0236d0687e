from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MessageType(str, Enum):
    # client -> relay
    CREATE_ROOM = "create-room"
    JOIN_ROOM = "join-room"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    # relay -> client
    ROOM_CREATED = "room-created"
    ROOM_JOINED = "room-joined"
    NEW_PEER = "new-peer"
    PEER_LEFT = "peer-left"
    ERROR = "error"
    # any type string we don't know about
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def parse(cls, value) -> "MessageType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.UNRECOGNIZED


SIGNAL_TYPES = frozenset({MessageType.OFFER, MessageType.ANSWER, MessageType.ICE_CANDIDATE})


class Envelope(BaseModel):
    """Control message exchanged between a client and the relay.

    Attribute names are snake_case; the camelCase wire names are aliases.
    Absent fields are omitted from the wire form, never sent as null.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: MessageType
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    room_id: Optional[str] = Field(default=None, alias="roomId")
    peer_id: Optional[str] = Field(default=None, alias="peerId")
    data: Any = None
    # original type string as received, kept for diagnostics only
    raw_type: Optional[str] = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _decode_type(cls, values):
        if isinstance(values, dict) and "type" in values:
            raw = values["type"]
            values = dict(values)
            values["type"] = MessageType.parse(raw)
            if values["type"] is MessageType.UNRECOGNIZED and "raw_type" not in values:
                values["raw_type"] = str(raw)
        return values

    @classmethod
    def from_wire(cls, payload: dict) -> "Envelope":
        return cls.model_validate(payload)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
