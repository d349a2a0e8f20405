"""HTTP publish relay for clients without a websocket."""

from fastapi import APIRouter, status

from retroboard.api.deps import CurrentUserId
from retroboard.db.session import DBSession
from retroboard.models.board import Role
from retroboard.realtime.broker import broker
from retroboard.realtime.connections import relay_message
from retroboard.realtime.events import board_channel
from retroboard.realtime.schemas import PublishRequest
from retroboard.services import require_board_role

router = APIRouter()


@router.post("/{board_id}/events", status_code=status.HTTP_202_ACCEPTED)
async def publish_event(
    board_id: str,
    body: PublishRequest,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> dict[str, str | int]:
    """Publish one event on the board channel as the calling user."""
    await require_board_role(db, board_id, current_user_id, Role.MEMBER)
    await relay_message(broker, board_id, current_user_id, body.kind, body.payload)
    return {
        "status": "published",
        "kind": body.kind,
        "subscribers": broker.subscriber_count(board_channel(board_id)),
    }
