# src/cbcloud/domains/realtime/routes.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from cbcloud.core.database import Database, get_db
from cbcloud.core.realtime import RoomHub, get_hub
from cbcloud.domains.auth.dependencies import authenticate_token
from cbcloud.domains.products.service import authorize_product
from cbcloud.domains.realtime.models import RoomMessage
from cbcloud.shared.exceptions import AppError, AuthenticationError, MissingTokenError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])

# Application close code for a rejected or revoked token
WS_UNAUTHORIZED = 4401


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "error", "data": {"error": message}})


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> None:
    """
    Realtime channel. Clients join product rooms and receive clipboard
    events for them as ``{"event", "data"}`` messages.
    """
    try:
        if not token:
            raise MissingTokenError()
        user = await authenticate_token(token, db)
    except AuthenticationError as exc:
        await websocket.close(code=WS_UNAUTHORIZED, reason=str(exc.detail))
        return

    await websocket.accept()
    logger.debug(f"Realtime connection opened for {user.id}", extra={"user_id": user.id})
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = RoomMessage.model_validate_json(raw)
            except PydanticValidationError:
                await _send_error(websocket, "Invalid message")
                continue

            if message.action == "leave-room":
                hub.leave(message.room_id, websocket)
                await websocket.send_json(
                    {"event": "left-room", "data": {"roomId": message.room_id}}
                )
                continue

            try:
                # Re-resolve the principal so revoked tokens and grants apply.
                user = await authenticate_token(token, db)
                await authorize_product(db, user, message.room_id)
            except AuthenticationError as exc:
                await websocket.close(code=WS_UNAUTHORIZED, reason=str(exc.detail))
                return
            except AppError as exc:
                await _send_error(websocket, str(exc.detail))
                continue
            hub.join(message.room_id, websocket, user.id)
            await websocket.send_json(
                {"event": "joined-room", "data": {"roomId": message.room_id}}
            )
    except WebSocketDisconnect:
        logger.debug(f"Realtime connection closed for {user.id}", extra={"user_id": user.id})
    finally:
        hub.disconnect(websocket)
