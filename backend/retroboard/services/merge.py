"""Merge engine: combine several posts into one inside a single transaction.

The merged post's vote count is the number of distinct voters across the
target and every source, so a user who voted on two merged posts counts
once. Vote rows are reduced to one per voter, all pointing at the target,
which keeps the count a pure function of the row set afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from retroboard.exceptions import InvalidMergeError, NotFoundError, WrongBoardError
from retroboard.models.board import Post, Task, Vote

logger = structlog.get_logger()

CONTENT_SEPARATOR = "\n\n---\n\n"


def combine_contents(target_content: str, source_contents: list[str]) -> str:
    """Default merged text: non-blank contents joined by a horizontal rule."""
    return CONTENT_SEPARATOR.join(
        content for content in [target_content, *source_contents] if content.strip()
    )


def validate_merge_request(
    target_post_id: str,
    source_post_ids: list[str],
    merged_content: str | None = None,
) -> list[str]:
    """Check a merge request before any transaction is opened.

    Returns the de-duplicated source ids in request order. ``None`` content
    is allowed and means the contents are combined with :func:`combine_contents`.

    Raises:
        InvalidMergeError: on an empty target, no sources, blank content,
            or the target listed among the sources.
    """
    if not target_post_id or not target_post_id.strip():
        raise InvalidMergeError("Target post ID is required")
    sources = list(dict.fromkeys(source_post_ids))
    if not sources:
        raise InvalidMergeError("At least one source post is required")
    if merged_content is not None and not merged_content.strip():
        raise InvalidMergeError("Merged content cannot be empty")
    if target_post_id in sources:
        raise InvalidMergeError("Target post cannot be included in source posts")
    return sources


@dataclass
class MergeResult:
    merged_post: Post
    unique_vote_count: int
    deleted_post_ids: list[str] = field(default_factory=list)


class MergeEngine:
    """Transactional, authoritative post merge."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def merge(
        self,
        board_id: str,
        target_post_id: str,
        source_post_ids: list[str],
        merged_content: str | None = None,
    ) -> MergeResult:
        """Merge ``source_post_ids`` into ``target_post_id``.

        Without ``merged_content`` the target keeps its text followed by each
        source's, separated by a horizontal rule.

        All or nothing: any failure rolls the whole transaction back.

        Raises:
            InvalidMergeError: request rejected before the transaction.
            NotFoundError: a post is missing, or (``WrongBoardError``) on
                another board.
        """
        sources = validate_merge_request(target_post_id, source_post_ids, merged_content)

        try:
            result = await self._merge_rows(board_id, target_post_id, sources, merged_content)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.warning(
                "merge_aborted",
                board_id=board_id,
                target_post_id=target_post_id,
                source_post_ids=sources,
            )
            raise

        await self.db.refresh(result.merged_post)
        logger.info(
            "merge_committed",
            board_id=board_id,
            target_post_id=target_post_id,
            deleted_post_ids=result.deleted_post_ids,
            unique_vote_count=result.unique_vote_count,
        )
        return result

    async def _merge_rows(
        self,
        board_id: str,
        target_post_id: str,
        source_post_ids: list[str],
        merged_content: str | None,
    ) -> MergeResult:
        post_ids = [target_post_id, *source_post_ids]

        # 1. Every post must exist and belong to the board
        result = await self.db.execute(
            select(Post).where(Post.id.in_(post_ids)).with_for_update()
        )
        posts = {post.id: post for post in result.scalars().all()}
        for post_id in post_ids:
            post = posts.get(post_id)
            if post is None:
                raise NotFoundError("Post", post_id)
            if post.board_id != board_id:
                raise WrongBoardError("Post", post_id, board_id)

        # 2-3. One vote row per distinct voter, all on the target
        votes_result = await self.db.execute(
            select(Vote.id, Vote.user_id, Vote.post_id)
            .where(Vote.post_id.in_(post_ids))
            .order_by(Vote.id)
        )
        kept: dict[str, tuple[str, str]] = {}
        for vote_id, user_id, post_id in votes_result.all():
            current = kept.get(user_id)
            if current is None or (post_id == target_post_id and current[1] != target_post_id):
                kept[user_id] = (vote_id, post_id)

        kept_ids = {vote_id for vote_id, _ in kept.values()}
        repoint_ids = [vote_id for vote_id, post_id in kept.values() if post_id != target_post_id]
        unique_vote_count = len(kept)

        await self.db.execute(
            delete(Vote)
            .where(Vote.post_id.in_(post_ids), Vote.id.not_in(kept_ids))
            .execution_options(synchronize_session=False)
        )
        if repoint_ids:
            await self.db.execute(
                update(Vote)
                .where(Vote.id.in_(repoint_ids))
                .values(post_id=target_post_id)
                .execution_options(synchronize_session=False)
            )

        # 4. Target takes the merged content and the recomputed count
        target = posts[target_post_id]
        if merged_content is None:
            merged_content = combine_contents(
                target.content, [posts[post_id].content for post_id in source_post_ids]
            )
        target.content = merged_content
        target.vote_count = unique_vote_count
        target.updated_at = datetime.now(timezone.utc)

        # 5-6. Source tasks and rows go; the target's own task stays
        await self.db.execute(
            delete(Task)
            .where(Task.post_id.in_(source_post_ids))
            .execution_options(synchronize_session=False)
        )
        for post_id in source_post_ids:
            self.db.expunge(posts[post_id])
        await self.db.execute(
            delete(Post)
            .where(Post.id.in_(source_post_ids))
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()

        return MergeResult(
            merged_post=target,
            unique_vote_count=unique_vote_count,
            deleted_post_ids=list(source_post_ids),
        )
