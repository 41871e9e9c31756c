"""WebSocket endpoint for realtime room subscriptions.

Client frames::

    {"action": "join_material" | "leave_material", "material_id": "<uuid>"}
    {"action": "join_user", "user_id": "<uuid>"}     # own id only
    {"action": "leave_user"}

Server frames are ``{"event": <name>, "data": <payload>}``.
"""

import json
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.core.dependencies import resolve_principal
from app.domain.entities import User
from app.infrastructure.database.connection import async_session_maker
from app.infrastructure.database.repository import UserRepository
from app.infrastructure.realtime.rooms import RealtimeChannelRouter
from app.services.events import material_room, user_room

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


async def authenticate_socket(token: Optional[str]) -> Optional[User]:
    """Resolve the connection's principal with a short-lived session."""
    if not token:
        return None
    async with async_session_maker() as session:
        return await resolve_principal(token, UserRepository(session))


def _parse_uuid(value) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def handle_message(
    rooms: RealtimeChannelRouter, websocket: WebSocket, user: Optional[User], message: dict
) -> dict:
    """Apply one client frame and return the reply frame."""
    action = message.get("action")

    if action in ("join_material", "leave_material"):
        material_id = _parse_uuid(message.get("material_id"))
        if material_id is None:
            return {"event": "error", "data": {"detail": "material_id must be a UUID"}}
        room = material_room(material_id)
        if action == "join_material":
            await rooms.join(websocket, room)
            return {"event": "joined", "data": {"room": room}}
        await rooms.leave(websocket, room)
        return {"event": "left", "data": {"room": room}}

    if action == "join_user":
        requested = _parse_uuid(message.get("user_id"))
        if user is None or requested != user.id:
            return {"event": "error", "data": {"detail": "Cannot join another user's room"}}
        room = user_room(user.id)
        await rooms.join(websocket, room)
        return {"event": "joined", "data": {"room": room}}

    if action == "leave_user":
        if user is None:
            return {"event": "error", "data": {"detail": "Not authenticated"}}
        room = user_room(user.id)
        await rooms.leave(websocket, room)
        return {"event": "left", "data": {"room": room}}

    return {"event": "error", "data": {"detail": f"Unknown action: {action!r}"}}


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: Optional[str] = None) -> None:
    user = await authenticate_socket(token)
    if token and user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="invalid token")
        return

    await websocket.accept()
    rooms: RealtimeChannelRouter = websocket.app.state.realtime
    if user is not None:
        await rooms.join(websocket, user_room(user.id))
    logger.info("WebSocket connected (user=%s)", user.id if user else "anonymous")

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = frame.get("text")
            if raw is None:
                await websocket.send_json({"event": "error", "data": {"detail": "Expected a text frame"}})
                continue
            try:
                message = json.loads(raw)
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"detail": "Invalid JSON"}})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"event": "error", "data": {"detail": "Expected an object"}})
                continue
            await websocket.send_json(await handle_message(rooms, websocket, user, message))
    except WebSocketDisconnect:
        pass
    finally:
        left = await rooms.leave_all(websocket)
        logger.info("WebSocket disconnected (user=%s, rooms left=%d)", user.id if user else "anonymous", left)
