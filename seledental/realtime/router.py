"""WebSocket endpoint for real-time appointment updates"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from ..auth import resolve_user
from ..database import SessionLocal
from ..domain.appointments.catalog import STAFF_ROLES, Role
from ..errors import AppError
from ..models import User
from .broker import broker, parse_room

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tiempo real"])


def can_join(user: User, room: str) -> bool:
    """Whether a user may listen to a room"""
    parsed = parse_room(room)
    if parsed is None:
        return False

    kind, key = parsed
    if kind == "date":
        return True
    if kind == "receptionists":
        return user.role in STAFF_ROLES
    if user.role == Role.ADMIN.value:
        return True
    if kind == "client":
        return user.role == Role.CLIENT.value and str(user.id) == key
    if kind == "dentist":
        return user.role == Role.DENTIST.value and str(user.id) == key
    return False


def _authenticate(token: Optional[str]) -> Optional[User]:
    db = SessionLocal()
    try:
        user = resolve_user(db, token)
        db.expunge(user)
        return user
    except AppError as e:
        logger.info(f"🔒 WebSocket rejected: {e.message}")
        return None
    finally:
        db.close()


async def _handle_message(websocket: WebSocket, user: User, message: Any) -> None:
    if not isinstance(message, dict):
        await websocket.send_json({"evento": "error", "mensaje": "Mensaje inválido"})
        return

    action = message.get("accion")
    room = message.get("sala")
    if action not in ("join", "leave") or not isinstance(room, str):
        await websocket.send_json({"evento": "error", "mensaje": "Mensaje inválido"})
        return

    if action == "leave":
        broker.leave(websocket, room)
        await websocket.send_json({"evento": "left", "sala": room})
        return

    if not can_join(user, room):
        logger.warning(f"⚠️ User {user.id} ({user.role}) denied access to room {room}")
        await websocket.send_json(
            {"evento": "error", "sala": room, "mensaje": "No tiene acceso a esta sala"}
        )
        return

    broker.join(websocket, room)
    await websocket.send_json({"evento": "joined", "sala": room})


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Subscribe to appointment events.

    Client messages: ``{"accion": "join" | "leave", "sala": "<room>"}``.
    Events arrive as ``{"evento": name, "datos": payload}``.
    """
    user = _authenticate(token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info(f"🔌 WebSocket connected for user {user.id} ({user.role})")

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"evento": "error", "mensaje": "Mensaje inválido"})
                continue
            await _handle_message(websocket, user, message)
    except WebSocketDisconnect:
        logger.info(f"🔌 WebSocket disconnected for user {user.id}")
    finally:
        broker.disconnect(websocket)
