from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..connection import Connection
from ..handlers import handle_message
from ..registry import RoomRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ws"])


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    registry: RoomRegistry = ws.app.state.registry
    connection = Connection(ws, ip=ws.client.host if ws.client else "")
    writer = asyncio.create_task(connection.pump())
    try:
        while True:
            message = await ws.receive_text()
            await handle_message(registry, connection, message)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket error from %s", connection.ip)
    finally:
        connection.destroy()
        writer.cancel()
