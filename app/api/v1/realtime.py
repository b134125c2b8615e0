"""WebSocket endpoint for the real-time broadcast service."""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.api.deps import authenticate_token
from app.core.container import Services
from app.core.errors import AuthenticationFailed
from app.services.identity import AuthenticatedUser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _identify(services: Services, token: str | None) -> AuthenticatedUser | None:
    """Optional authentication for sockets; a bad token just means anonymous."""
    if not token:
        return None
    async with services.realtime.session_factory() as session:
        try:
            return await authenticate_token(token, services, session)
        except AuthenticationFailed as exc:
            logger.info("Socket connected anonymously: %s", exc.code)
            return None


@router.websocket("/realtime")
async def realtime_socket(websocket: WebSocket, token: str | None = None) -> None:
    services: Services = websocket.app.state.services
    realtime = services.realtime

    identity = await _identify(services, token)
    await websocket.accept()
    conn = realtime.connect(websocket, identity)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                await conn.send("error", {"message": "Messages must be JSON"})
                continue
            try:
                message = json.loads(raw)
            except ValueError:
                await conn.send("error", {"message": "Messages must be JSON"})
                continue
            if not isinstance(message, dict):
                await conn.send("error", {"message": "Expected {\"event\": ..., \"data\": ...}"})
                continue
            await realtime.handle_event(conn, message.get("event"), message.get("data"))
    except WebSocketDisconnect:
        pass
    finally:
        realtime.disconnect(conn)
