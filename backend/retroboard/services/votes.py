"""Vote ledger: one row per (board, user, post).

A vote is a presence fact. It is inserted on upvote and deleted on
downvote, never updated, so a post's vote count is always the number of
rows that currently reference it.
"""

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from retroboard.exceptions import ConflictError
from retroboard.models.board import Post, Vote
from retroboard.services.posts import PostService

logger = structlog.get_logger()


class VoteLedger:
    """Authoritative vote storage."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_votes(self, post_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Vote).where(Vote.post_id == post_id)
        )
        return result.scalar_one()

    async def voter_ids(self, post_id: str) -> list[str]:
        result = await self.db.execute(
            select(Vote.user_id).where(Vote.post_id == post_id).order_by(Vote.user_id)
        )
        return list(result.scalars().all())

    async def voted_post_ids(self, user_id: str, board_id: str) -> list[str]:
        """Posts on the board the user currently has a vote on."""
        result = await self.db.execute(
            select(Vote.post_id).where(Vote.user_id == user_id, Vote.board_id == board_id)
        )
        return list(result.scalars().all())

    async def _sync_vote_count(self, post: Post) -> int:
        post.vote_count = await self.count_votes(post.id)
        return post.vote_count

    async def up_vote(self, post_id: str, user_id: str, board_id: str) -> int:
        """Insert the user's vote and return the post's new count.

        Raises:
            NotFoundError: the post does not exist on this board.
            ConflictError: the user has already voted on the post. Benign;
                nothing changed.
        """
        post = await PostService(self.db).get_post(post_id, board_id)
        existing = await self.db.execute(
            select(Vote.id).where(
                Vote.post_id == post_id,
                Vote.user_id == user_id,
                Vote.board_id == board_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            logger.info("vote_already_exists", post_id=post_id, user_id=user_id, board_id=board_id)
            raise ConflictError("Already voted", post_id=post_id, user_id=user_id)

        self.db.add(Vote(user_id=user_id, post_id=post_id, board_id=board_id))
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same vote
            await self.db.rollback()
            logger.info("vote_already_exists", post_id=post_id, user_id=user_id, board_id=board_id)
            raise ConflictError("Already voted", post_id=post_id, user_id=user_id) from None

        count = await self._sync_vote_count(post)
        await self.db.commit()

        logger.info("vote_added", post_id=post_id, user_id=user_id, board_id=board_id, vote_count=count)
        return count

    async def down_vote(self, post_id: str, user_id: str, board_id: str) -> tuple[bool, int]:
        """Delete the user's vote; returns (removed, new count)."""
        post = await PostService(self.db).get_post(post_id, board_id)
        result = await self.db.execute(
            delete(Vote).where(
                Vote.post_id == post_id,
                Vote.user_id == user_id,
                Vote.board_id == board_id,
            )
        )
        removed = result.rowcount > 0
        count = await self._sync_vote_count(post)
        await self.db.commit()

        logger.info(
            "vote_removed" if removed else "vote_not_present",
            post_id=post_id,
            user_id=user_id,
            board_id=board_id,
            vote_count=count,
        )
        return removed, count
