"""Board and membership service."""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retroboard.exceptions import NotFoundError
from retroboard.models.board import Board, BoardMember, Role

logger = structlog.get_logger()


class BoardService:
    """Create boards and manage who may act on them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_board(self, board_id: str) -> Board:
        result = await self.db.execute(select(Board).where(Board.id == board_id))
        board = result.scalar_one_or_none()
        if board is None:
            raise NotFoundError("Board", board_id)
        return board

    async def create_board(self, title: str, creator_id: str) -> Board:
        """Create a board; the creator becomes its owner."""
        board = Board(title=title, creator_id=creator_id)
        self.db.add(board)
        await self.db.flush()
        self.db.add(BoardMember(board_id=board.id, user_id=creator_id, role=int(Role.OWNER)))
        await self.db.commit()
        await self.db.refresh(board)

        logger.info("board_created", board_id=board.id, creator_id=creator_id)
        return board

    async def set_member(self, board_id: str, user_id: str, role: Role | int = Role.MEMBER) -> BoardMember:
        """Add a member, or change the role of an existing one."""
        await self.get_board(board_id)
        result = await self.db.execute(
            select(BoardMember).where(
                BoardMember.board_id == board_id,
                BoardMember.user_id == user_id,
            )
        )
        member = result.scalar_one_or_none()
        if member is None:
            member = BoardMember(board_id=board_id, user_id=user_id, role=int(Role(role)))
            self.db.add(member)
        else:
            member.role = int(Role(role))
        await self.db.commit()
        await self.db.refresh(member)

        logger.info("board_member_set", board_id=board_id, user_id=user_id, role=Role(role).name)
        return member
