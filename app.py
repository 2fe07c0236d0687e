from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from routers.rooms import rooms_router
from routers.status import status_router
from connections import WebSocketHandle, connection_registry
from signaling import signaling_router
from schemas.messages import Envelope, MessageType
from constants import LOG_LEVEL, LOG_FILE, WS_PATH, MALFORMED_MESSAGE
import uuid
import json
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

app = FastAPI()

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allow all HTTP methods
    allow_headers=["*"],  # Allow all headers
)

app.include_router(rooms_router)
app.include_router(status_router)

logger.info("FastAPI application initialized")


@app.websocket(WS_PATH)
async def websocket_endpoint(websocket: WebSocket):
    """Signaling WebSocket.

    Each accepted socket gets its own connection id. Frames are JSON envelopes;
    anything that doesn't decode is answered with an error and never reaches
    the signaling router.
    """
    connection_id = str(uuid.uuid4())
    client_host = websocket.client.host if websocket.client else 'unknown'
    logger.info(f"WebSocket connection attempt from {client_host}")

    await websocket.accept()
    signaling_router.on_connect(connection_id, WebSocketHandle(websocket))

    try:
        message_count = 0
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                break

            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")

            data = message.get("text")
            if data is None:
                logger.warning(f"Binary frame from connection {connection_id} rejected")
                await connection_registry.send(connection_id, Envelope(type=MessageType.ERROR, data=MALFORMED_MESSAGE))
                continue

            try:
                envelope = Envelope.from_wire(json.loads(data))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Malformed message from connection {connection_id}: {e}")
                await connection_registry.send(connection_id, Envelope(type=MessageType.ERROR, data=MALFORMED_MESSAGE))
                continue

            await signaling_router.on_message(connection_id, envelope)

    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        # Cleanup on disconnect
        await signaling_router.on_close(connection_id)
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")
