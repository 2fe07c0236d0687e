from pydantic import BaseModel


class RoomDetailsResponse(BaseModel):
    room_id: str
    participants_count: int

class RegistryStatsResponse(BaseModel):
    rooms: int
    participants: int
    connections: int

class StatusResponse(BaseModel):
    status: str
    timestamp: int
