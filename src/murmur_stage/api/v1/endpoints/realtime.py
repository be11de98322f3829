# src/murmur_stage/api/v1/endpoints/realtime.py
"""WebSocket endpoint streaming realtime events."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from murmur_stage.services.realtime import connection_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket) -> None:
    """Hold the connection open and let the broadcaster push events to it.

    Incoming messages are ignored; clients only listen.
    """
    await connection_manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Realtime client disconnected")
    finally:
        connection_manager.disconnect(websocket)
