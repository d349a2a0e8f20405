"""Post persistence service."""

from datetime import datetime, timezone
from typing import Sequence

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from retroboard.exceptions import NotFoundError, WrongBoardError
from retroboard.models.board import Post, PostType, Task, Vote

logger = structlog.get_logger()


class PostService:
    """Create, read, edit and delete posts on a board."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_post(self, post_id: str, board_id: str | None = None) -> Post:
        """Fetch a post, optionally checking it belongs to ``board_id``."""
        result = await self.db.execute(select(Post).where(Post.id == post_id))
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError("Post", post_id)
        if board_id is not None and post.board_id != board_id:
            raise WrongBoardError("Post", post_id, board_id)
        return post

    async def list_posts(self, board_id: str) -> Sequence[Post]:
        result = await self.db.execute(
            select(Post).where(Post.board_id == board_id).order_by(Post.created_at, Post.id)
        )
        return result.scalars().all()

    async def create_post(
        self,
        board_id: str,
        content: str,
        post_type: PostType | int,
        author: str | None,
        post_id: str | None = None,
        created_at: datetime | None = None,
    ) -> Post:
        """Insert a post. Client-generated ids are kept so optimistic copies match."""
        now = created_at or datetime.now(timezone.utc)
        post = Post(
            board_id=board_id,
            content=content,
            post_type=int(PostType(post_type)),
            author=author,
            vote_count=0,
            created_at=now,
            updated_at=now,
        )
        if post_id:
            post.id = post_id
        self.db.add(post)
        await self.db.commit()
        await self.db.refresh(post)

        logger.info("post_created", post_id=post.id, board_id=board_id, post_type=post.post_type)
        return post

    async def update_content(self, post_id: str, board_id: str, content: str) -> Post:
        post = await self.get_post(post_id, board_id)
        post.content = content
        post.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(post)

        logger.info("post_content_updated", post_id=post_id, board_id=board_id)
        return post

    async def update_type(self, post_id: str, board_id: str, post_type: PostType | int) -> Post:
        post = await self.get_post(post_id, board_id)
        post.post_type = int(PostType(post_type))
        post.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(post)

        logger.info("post_type_updated", post_id=post_id, board_id=board_id, post_type=post.post_type)
        return post

    async def delete_post(self, post_id: str, board_id: str) -> None:
        """Delete a post with its votes and task."""
        await self.get_post(post_id, board_id)
        await self.db.execute(delete(Vote).where(Vote.post_id == post_id))
        await self.db.execute(delete(Task).where(Task.post_id == post_id))
        await self.db.execute(delete(Post).where(Post.id == post_id))
        await self.db.commit()

        logger.info("post_deleted", post_id=post_id, board_id=board_id)
