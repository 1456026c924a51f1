"""
Realtime subscription endpoint.

Connect: ws://host/ws/apps/{app_id}?token={jwt}

The socket is subscribed to both channels of the app, `app:<id>` for canvas and
element events and `canvas-<id>` for bulk state saves. Template analytics
events reach every connected socket.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from floneo.core.error_handlers import APIError, AuthenticationError
from floneo.core.security import authenticate_token
from floneo.core.websockets import ConnectionManager, app_channel, get_broadcaster, state_channel
from floneo.db.database import get_session
from floneo.models.user import User
from floneo.services.ownership import get_owned_app

logger = logging.getLogger(__name__)

router = APIRouter()

CLOSE_UNAUTHORIZED = 4001
CLOSE_NOT_FOUND = 4004
CLOSE_UNAVAILABLE = 1011


def _authorize(session: Session, token: str, app_id: int) -> User:
    # No transaction or pooled connection stays open while the socket is connected
    try:
        user = authenticate_token(session, token)
        get_owned_app(session, app_id, user)
        return user
    finally:
        session.close()


@router.websocket("/ws/apps/{app_id}")
async def app_websocket(
    websocket: WebSocket,
    app_id: int,
    token: str = Query(..., description="JWT access token"),
    session: Session = Depends(get_session),
    broadcaster: Optional[ConnectionManager] = Depends(get_broadcaster),
):
    if broadcaster is None:
        await websocket.close(code=CLOSE_UNAVAILABLE, reason="Realtime updates unavailable")
        return

    try:
        user = await run_in_threadpool(_authorize, session, token, app_id)
    except AuthenticationError as e:
        logger.warning(f"WebSocket auth failed for app {app_id}: {e.message}")
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason=e.message)
        return
    except APIError as e:
        logger.warning(f"WebSocket rejected for app {app_id}: {e.message}")
        await websocket.close(code=CLOSE_NOT_FOUND, reason=e.message)
        return

    channels = (app_channel(app_id), state_channel(app_id))
    await broadcaster.connect(websocket, *channels)
    try:
        await websocket.send_json({
            "event": "connected",
            "data": {"app_id": app_id, "user_id": user.id, "channels": list(channels)},
        })
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
            else:
                logger.debug(f"WebSocket received on app {app_id}: {data[:100]}")
    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected from app {app_id}")
    finally:
        broadcaster.disconnect(websocket, *channels)
