"""
WebSocket endpoint for real-time trip and itinerary notifications.

Clients connect to ``/ws?token=<access token>`` and are joined to the room of
the user the token names. The server only pushes; anything the client sends
is ignored.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from src.auth.dependencies import authenticate_token
from src.domain.errors import DatabaseUnconfigured, DomainError
from src.infrastructure.database import Database
from src.infrastructure.events import RoomConnectionManager, user_room


logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def notifications(websocket: WebSocket, token: Optional[str] = Query(None)):
    manager: Optional[RoomConnectionManager] = getattr(websocket.app.state, "connections", None)
    database: Optional[Database] = getattr(websocket.app.state, "database", None)

    try:
        if database is None:
            raise DatabaseUnconfigured()
        async with database.session() as db:
            user = await authenticate_token(db, token)
    except DomainError as e:
        logger.info(f"Rejected WebSocket connection: {e.code}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.code)
        return

    if manager is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    room = user_room(user.id)
    await manager.connect(websocket, room)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket, room)
        logger.info(f"WebSocket left room {room}")
