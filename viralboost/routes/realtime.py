"""
WebSocket endpoint: one socket per browser tab, frames handed to the hub.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from viralboost.infrastructure.observability.logging import bound_context, get_logger
from viralboost.realtime.hub import MessagingHub

router = APIRouter(tags=["realtime"])
logger = get_logger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    hub: MessagingHub = websocket.app.state.hub
    await websocket.accept()
    connection = hub.connect(websocket)

    with bound_context(connection_id=connection.id):
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

                # Binary frames go through the same parser as text frames
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await hub.handle_frame(connection, raw)
        except WebSocketDisconnect as e:
            logger.debug("Socket disconnected", code=e.code)
        except RuntimeError as e:
            # Starlette raises RuntimeError once the socket is no longer connected
            logger.debug("Socket closed", error=str(e))
        finally:
            await hub.disconnect(connection)
