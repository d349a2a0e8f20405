"""Board access control.

Role lookup per (user, board). Authentication happens upstream; these
helpers only answer whether an identified user may mutate a board.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retroboard.exceptions import PermissionDeniedError
from retroboard.models.board import BoardMember, Role

logger = structlog.get_logger()


def has_required_role(user_role: Role | int, required_role: Role | int) -> bool:
    """Lower role values carry more privilege (owner < member < guest)."""
    return int(user_role) <= int(required_role)


async def get_member_role(db: AsyncSession, board_id: str, user_id: str) -> Role | None:
    """Return the user's role on the board, or None when not a member."""
    result = await db.execute(
        select(BoardMember.role).where(
            BoardMember.board_id == board_id,
            BoardMember.user_id == user_id,
        )
    )
    role = result.scalar_one_or_none()
    return Role(role) if role is not None else None


async def require_board_role(
    db: AsyncSession,
    board_id: str,
    user_id: str,
    required_role: Role = Role.MEMBER,
) -> Role:
    """Ensure the user holds at least ``required_role`` on the board.

    Raises:
        PermissionDeniedError: not a member, or role insufficient.
    """
    role = await get_member_role(db, board_id, user_id)
    if role is None or not has_required_role(role, required_role):
        logger.warning(
            "board_access_denied",
            board_id=board_id,
            user_id=user_id,
            role=role.name if role is not None else None,
            required_role=required_role.name,
        )
        raise PermissionDeniedError(user_id, board_id, required_role.name.lower())
    return role
