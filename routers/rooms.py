from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomDetailsResponse, RegistryStatsResponse
from backend import room_backend
from connections import connection_registry
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("", response_model=RegistryStatsResponse)
async def get_registry_stats():
    stats = room_backend.stats()
    return RegistryStatsResponse(
        rooms=stats["rooms"],
        participants=stats["participants"],
        connections=connection_registry.count(),
    )


@rooms_router.get("/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, request: Request):
    """
    Get the number of participants currently in a room.

    Connection ids are never exposed; they are routing keys for the relay only.
    """
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {room_id} from {client_host}")

    participants = room_backend.get_participants(room_id)
    if not participants:
        logger.warning(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomDetailsResponse(
        room_id=room_id,
        participants_count=len(participants),
    )
