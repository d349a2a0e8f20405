"""Optimistic mutations with guaranteed rollback.

Each user action runs the same three steps:

1. apply the change to the store right away and keep the returned
   :class:`~retroboard.store.state.Rollback`;
2. await the authoritative remote call;
3. on success broadcast the event on the board channel, on failure apply
   the rollback, show a transient error and log the failure.

A failed broadcast after a successful remote call is logged only; the
write stands and nothing is rolled back.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import structlog

from retroboard.db.base import new_id
from retroboard.exceptions import ConflictError, InvalidMergeError, TransientBroadcastError
from retroboard.models.board import PostType, TaskState
from retroboard.realtime.broker import Publisher
from retroboard.realtime.events import EventKind, MessageHeaders, RealtimeMessage, board_channel
from retroboard.realtime.retry import publish_with_retry
from retroboard.realtime.router import now_ms
from retroboard.realtime.schemas import (
    MergeOutcome,
    PostMerge,
    PostRecord,
    TaskChange,
    VoteEvent,
)
from retroboard.services.merge import combine_contents, validate_merge_request
from retroboard.store.remote import BoardRemote
from retroboard.store.state import BoardStore, Rollback
from retroboard.store.toasts import ToastQueue

logger = structlog.get_logger()

_FAILED = object()


class MutationAPI:
    """User actions against one board, on behalf of one user."""

    def __init__(
        self,
        store: BoardStore,
        remote: BoardRemote,
        publisher: Publisher,
        *,
        board_id: str,
        current_user_id: str,
        toasts: ToastQueue | None = None,
        clock: Callable[[], int] = now_ms,
        publish_options: dict[str, Any] | None = None,
    ):
        self.store = store
        self.remote = remote
        self.publisher = publisher
        self.board_id = board_id
        self.current_user_id = current_user_id
        self.toasts = toasts or ToastQueue()
        self.clock = clock
        self.publish_options = publish_options or {}

    # =========================================================================
    # Plumbing
    # =========================================================================

    async def _remote(
        self,
        operation: str,
        entity_id: str | None,
        rollback: Rollback,
        call: Callable[[], Awaitable[Any]],
        failure_message: str,
        benign: tuple[type[Exception], ...] = (),
    ) -> Any:
        """Run the remote call; on failure undo ``rollback`` and return ``_FAILED``."""
        try:
            return await call()
        except benign as exc:
            # Server already holds the intended state; only the local delta is wrong
            self.store.rollback(rollback)
            logger.info(
                "mutation_noop_on_remote",
                operation=operation,
                entity_id=entity_id,
                board_id=self.board_id,
                reason=str(exc),
            )
            return _FAILED
        except Exception as exc:
            self.store.rollback(rollback)
            self.toasts.error(failure_message)
            logger.error(
                "mutation_failed",
                operation=operation,
                entity_id=entity_id,
                board_id=self.board_id,
                user_id=self.current_user_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return _FAILED

    async def _broadcast(self, kind: EventKind, payload: dict[str, Any]) -> bool:
        message = RealtimeMessage(
            kind=kind.value,
            headers=MessageHeaders(user=self.current_user_id),
            payload=payload,
        )
        try:
            await publish_with_retry(
                self.publisher,
                board_channel(self.board_id),
                message,
                **self.publish_options,
            )
        except TransientBroadcastError as exc:
            logger.warning(
                "broadcast_failed",
                kind=kind.value,
                board_id=self.board_id,
                error=exc.message,
                note="write committed; other clients may lag until refresh",
            )
            return False
        return True

    # =========================================================================
    # Posts
    # =========================================================================

    async def create_post(self, content: str, post_type: PostType, post_id: str | None = None) -> PostRecord | None:
        now = datetime.now(timezone.utc)
        post = PostRecord(
            id=post_id or new_id(),
            content=content,
            type=PostType(post_type),
            author=self.current_user_id,
            board_id=self.board_id,
            vote_count=0,
            created_at=now,
            updated_at=now,
        )
        rollback = self.store.add_post(post)
        saved = await self._remote(
            "create_post",
            post.id,
            rollback,
            lambda: self.remote.create_post(post),
            "Failed to add post. Changes have been reverted.",
        )
        if saved is _FAILED:
            return None

        self.store.replace_post(saved)
        await self._broadcast(EventKind.POST_ADD, saved.to_wire())
        return saved

    async def delete_post(self, post_id: str) -> bool:
        rollback = self.store.remove_post(post_id)
        result = await self._remote(
            "delete_post",
            post_id,
            rollback,
            lambda: self.remote.delete_post(self.board_id, post_id),
            "Failed to delete post. Changes have been reverted.",
        )
        if result is _FAILED:
            return False

        await self._broadcast(EventKind.POST_DELETE, {"id": post_id})
        return True

    async def update_content(self, post_id: str, content: str) -> bool:
        rollback = self.store.update_post_content(post_id, content)
        result = await self._remote(
            "update_post_content",
            post_id,
            rollback,
            lambda: self.remote.update_post_content(self.board_id, post_id, content),
            "Failed to update post. Changes have been reverted.",
        )
        if result is _FAILED:
            return False

        await self._broadcast(EventKind.POST_UPDATE_CONTENT, {"id": post_id, "content": content})
        return True

    async def update_type(self, post_id: str, post_type: PostType) -> bool:
        post_type = PostType(post_type)
        rollback = self.store.update_post_type(post_id, post_type)
        result = await self._remote(
            "update_post_type",
            post_id,
            rollback,
            lambda: self.remote.update_post_type(self.board_id, post_id, post_type),
            "Failed to move post. Changes have been reverted.",
        )
        if result is _FAILED:
            return False

        await self._broadcast(EventKind.POST_UPDATE_TYPE, {"id": post_id, "type": int(post_type)})
        return True

    # =========================================================================
    # Votes
    # =========================================================================

    def _vote_payload(self, post_id: str, operation: str) -> dict[str, Any]:
        return VoteEvent(
            id=post_id,
            operation=operation,
            user_id=self.current_user_id,
            timestamp=self.clock(),
        ).to_wire()

    async def upvote(self, post_id: str) -> bool:
        rollback = self.store.increment_vote_count(post_id)
        result = await self._remote(
            "up_vote",
            post_id,
            rollback,
            lambda: self.remote.up_vote(self.board_id, post_id),
            "Failed to vote. Changes have been reverted.",
            benign=(ConflictError,),
        )
        if result is _FAILED:
            return False

        await self._broadcast(EventKind.POST_UPVOTE, self._vote_payload(post_id, "upvote"))
        return True

    async def downvote(self, post_id: str) -> bool:
        rollback = self.store.decrement_vote_count(post_id)
        result = await self._remote(
            "down_vote",
            post_id,
            rollback,
            lambda: self.remote.down_vote(self.board_id, post_id),
            "Failed to remove vote. Changes have been reverted.",
        )
        if result is _FAILED:
            return False
        if not result.removed:
            # No vote row existed, so there is nothing to broadcast
            self.store.rollback(rollback)
            return False

        await self._broadcast(EventKind.POST_DOWNVOTE, self._vote_payload(post_id, "downvote"))
        return True

    # =========================================================================
    # Tasks
    # =========================================================================

    async def _announce_task(self, change: TaskChange) -> None:
        self.store.upsert_task(change.task)
        if change.created:
            await self._broadcast(EventKind.ACTION_CREATE, change.task.to_wire())

    async def assign_task(self, post_id: str, user_id: str | None) -> bool:
        rollback = self.store.assign_task(post_id, user_id)
        change = await self._remote(
            "assign_task",
            post_id,
            rollback,
            lambda: self.remote.assign_task(self.board_id, post_id, user_id),
            "Failed to assign task. Changes have been reverted.",
        )
        if change is _FAILED:
            return False

        await self._announce_task(change)
        await self._broadcast(EventKind.ACTION_ASSIGN, {"postId": post_id, "userId": user_id})
        return True

    async def update_task_state(self, post_id: str, state: TaskState) -> bool:
        state = TaskState(state)
        rollback = self.store.update_task_state(post_id, state)
        change = await self._remote(
            "update_task_state",
            post_id,
            rollback,
            lambda: self.remote.update_task_state(self.board_id, post_id, state),
            "Failed to update task status. Changes have been reverted.",
        )
        if change is _FAILED:
            return False

        await self._announce_task(change)
        await self._broadcast(EventKind.ACTION_STATE_UPDATE, {"postId": post_id, "state": int(state)})
        return True

    # =========================================================================
    # Merge
    # =========================================================================

    def _combined_content(self, target_post_id: str, source_post_ids: list[str]) -> str:
        posts = (self.store.get_post(post_id) for post_id in [target_post_id, *source_post_ids])
        return combine_contents("", [post.content for post in posts if post is not None])

    async def merge_posts(
        self,
        target_post_id: str,
        source_post_ids: list[str],
        merged_content: str | None = None,
    ) -> MergeOutcome | None:
        """Merge posts; without ``merged_content`` the local contents are combined."""
        if merged_content is None:
            merged_content = self._combined_content(target_post_id, source_post_ids)
        try:
            sources = validate_merge_request(target_post_id, source_post_ids, merged_content)
        except InvalidMergeError as exc:
            self.toasts.error(exc.message)
            logger.warning("merge_rejected", target_post_id=target_post_id, reason=exc.message)
            return None

        rollback = self.store.merge_posts(target_post_id, sources, merged_content)
        outcome = await self._remote(
            "merge_posts",
            target_post_id,
            rollback,
            lambda: self.remote.merge_posts(self.board_id, target_post_id, sources, merged_content),
            "Failed to merge posts. Changes have been reverted.",
        )
        if outcome is _FAILED:
            return None

        merged = outcome.merged_post.model_copy(update={"vote_count": outcome.unique_vote_count})
        self.store.replace_post(merged)
        for post_id in outcome.deleted_post_ids:
            self.store.remove_post(post_id)
        self.toasts.success("Posts merged successfully")

        await self._broadcast(
            EventKind.POST_MERGE,
            PostMerge(
                target_post_id=target_post_id,
                source_post_ids=sources,
                merged_post=merged,
                unique_vote_count=outcome.unique_vote_count,
                deleted_post_ids=outcome.deleted_post_ids,
                timestamp=self.clock(),
            ).to_wire(),
        )
        return outcome
