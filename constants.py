import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

WS_PATH = os.getenv("WS_PATH", "/ws")

ROOM_NOT_FOUND = "Room doesn't exist"
ROOM_ALREADY_EXISTS = "Room already exists"
ALREADY_IN_ROOM = "Already in room"
MISSING_ROOM_ID = "Missing roomId"
MALFORMED_MESSAGE = "Malformed message"
