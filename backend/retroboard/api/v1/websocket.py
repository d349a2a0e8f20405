"""WebSocket endpoint for realtime board updates."""

import json

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from retroboard.db.session import async_session_factory
from retroboard.exceptions import PermissionDeniedError, RetroboardError
from retroboard.models.board import Role
from retroboard.realtime.connections import manager, relay_message
from retroboard.services import require_board_role

router = APIRouter(prefix="/ws", tags=["websocket"])
logger = structlog.get_logger()


@router.websocket("/boards/{board_id}")
async def board_socket(
    websocket: WebSocket,
    board_id: str,
    user_id: str = Query(..., min_length=1),
):
    """
    Realtime channel of one board.

    Outbound frames are board-channel messages ``{kind, headers, payload}``.
    Inbound frames are either ``{"type": "ping"}`` or ``{kind, payload}``,
    which is validated and re-published with ``headers.user`` set to the
    connected user.
    """
    async with async_session_factory() as db:
        try:
            await require_board_role(db, board_id, user_id, Role.GUEST)
        except PermissionDeniedError:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    await manager.connect(websocket, board_id, user_id)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "payload": {"code": "INVALID_JSON"}})
                continue
            if not isinstance(frame, dict):
                await websocket.send_json({"type": "error", "payload": {"code": "INVALID_FRAME"}})
                continue

            if frame.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            try:
                await relay_message(manager.bus, board_id, user_id, str(frame.get("kind", "")), frame.get("payload"))
            except RetroboardError as exc:
                logger.warning(
                    "websocket_frame_rejected",
                    board_id=board_id,
                    user_id=user_id,
                    code=exc.code,
                    error=exc.message,
                )
                await websocket.send_json(
                    {"type": "error", "payload": {"code": exc.code, "message": exc.message}}
                )

    except WebSocketDisconnect:
        manager.disconnect(websocket, board_id)
