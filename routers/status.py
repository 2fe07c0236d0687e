import time

from fastapi import APIRouter
from schemas.rooms import StatusResponse

status_router = APIRouter(prefix="/api", tags=["status"])


@status_router.get("/status", response_model=StatusResponse)
async def get_status():
    # Liveness only; does not touch room state
    return StatusResponse(status="running", timestamp=int(time.time() * 1000))
