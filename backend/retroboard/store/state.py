"""Reactive client-side state for one board.

The store holds the canonical local view of posts, their tasks and their
live vote counts. Live counts are kept apart from the persisted
``vote_count`` on each record so optimistic deltas never overwrite what
the server last confirmed.

Every mutator is synchronous and returns a :class:`Rollback`: the exact
inverse of what that call changed and nothing else. A missing entity is
never an error; the mutator returns a rollback with ``applied=False``.

Votes from other clients go through :meth:`BoardStore.apply_vote`, which
keeps the earliest and latest vote seen per user and post. The bus may
redeliver or reorder messages; the count still settles on the same value.
"""

from dataclasses import dataclass, field, replace
from typing import Callable, Iterable

import structlog

from retroboard.models.board import PostType, TaskState
from retroboard.realtime.schemas import PostRecord, TaskRecord
from retroboard.store.views import (
    EnrichedPost,
    SortOption,
    group_by_type,
    sort_posts,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class StoreChange:
    """Notification delivered to subscribers after every state change."""

    operation: str
    post_ids: tuple[str, ...] = ()


Subscriber = Callable[[StoreChange], None]


def _noop() -> None:
    return None


@dataclass(frozen=True)
class Rollback:
    """Inverse of one optimistic mutation, applied with :meth:`BoardStore.rollback`."""

    operation: str
    post_id: str | None
    undo: Callable[[], None] = field(repr=False, compare=False)
    applied: bool = True

    @classmethod
    def unchanged(cls, operation: str, post_id: str | None = None) -> "Rollback":
        return cls(operation, post_id, _noop, applied=False)


def _chain(steps: list[Callable[[], None]]) -> Callable[[], None]:
    # Undo in reverse order of application
    def undo() -> None:
        for step in reversed(steps):
            step()

    return undo


@dataclass(frozen=True)
class _VoteTrail:
    """Earliest and latest vote one user cast on one post, as seen so far."""

    first_timestamp: int
    first_operation: str
    last_timestamp: int
    last_operation: str

    def effect(self) -> int:
        # Every vote flips the user's state, so the earliest one tells
        # whether the user was already counted before it
        counted_before = 1 if self.first_operation == "downvote" else 0
        counted_now = 1 if self.last_operation == "upvote" else 0
        return counted_now - counted_before


@dataclass(frozen=True)
class _RemovedPost:
    index: int
    post: PostRecord
    task: TaskRecord | None
    vote_count: int
    vote_trails: dict[str, _VoteTrail] = field(default_factory=dict)
    vote_deficit: int = 0


class BoardStore:
    """Injectable state container with explicit subscribe/notify."""

    def __init__(self) -> None:
        self._posts: list[PostRecord] = []
        self._tasks: dict[str, TaskRecord] = {}
        self._vote_counts: dict[str, int] = {}
        # post id -> user id -> trail of that user's votes
        self._vote_trails: dict[str, dict[str, _VoteTrail]] = {}
        # Decrements swallowed by the zero floor, owed back to later increments
        self._vote_deficits: dict[str, int] = {}
        self._subscribers: list[Subscriber] = []
        self._enriched_cache: tuple[int, list[EnrichedPost]] | None = None
        self.version = 0

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, operation: str, *post_ids: str | None) -> None:
        self.version += 1
        change = StoreChange(operation, tuple(pid for pid in post_ids if pid))
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception:
                logger.exception("store_subscriber_failed", operation=operation)

    # =========================================================================
    # Read access and derived views
    # =========================================================================

    @property
    def posts(self) -> tuple[PostRecord, ...]:
        return tuple(self._posts)

    @property
    def tasks(self) -> dict[str, TaskRecord]:
        return dict(self._tasks)

    def get_post(self, post_id: str) -> PostRecord | None:
        index = self._index(post_id)
        return None if index is None else self._posts[index]

    def get_task(self, post_id: str) -> TaskRecord | None:
        return self._tasks.get(post_id)

    def vote_count(self, post_id: str) -> int:
        """Live vote count (persisted value plus optimistic deltas)."""
        return self._vote_counts.get(post_id, 0)

    def enriched_posts(self) -> list[EnrichedPost]:
        """Posts joined with task and live vote count, cached per version."""
        if self._enriched_cache is None or self._enriched_cache[0] != self.version:
            enriched = [
                EnrichedPost(
                    post=post,
                    task=self._tasks.get(post.id),
                    vote_count=self._vote_counts.get(post.id, post.vote_count),
                )
                for post in self._posts
            ]
            self._enriched_cache = (self.version, enriched)
        return list(self._enriched_cache[1])

    def sorted_posts(self, option: SortOption) -> list[EnrichedPost]:
        return sort_posts(self.enriched_posts(), option)

    def grouped_posts(self, option: SortOption | None = None) -> dict[PostType, list[EnrichedPost]]:
        return group_by_type(self.enriched_posts(), option)

    # =========================================================================
    # Internal primitives (no notification)
    # =========================================================================

    def _index(self, post_id: str) -> int | None:
        for index, post in enumerate(self._posts):
            if post.id == post_id:
                return index
        return None

    def _drop(self, post_id: str) -> _RemovedPost | None:
        index = self._index(post_id)
        if index is None:
            return None
        post = self._posts.pop(index)
        return _RemovedPost(
            index=index,
            post=post,
            task=self._tasks.pop(post_id, None),
            vote_count=self._vote_counts.pop(post_id, post.vote_count),
            vote_trails=self._vote_trails.pop(post_id, {}),
            vote_deficit=self._vote_deficits.pop(post_id, 0),
        )

    def _restore(self, removed: _RemovedPost) -> None:
        post_id = removed.post.id
        if self._index(post_id) is not None:
            return
        self._posts.insert(min(removed.index, len(self._posts)), removed.post)
        self._vote_counts[post_id] = removed.vote_count
        if removed.task is not None:
            self._tasks[post_id] = removed.task
        if removed.vote_trails:
            self._vote_trails[post_id] = removed.vote_trails
        if removed.vote_deficit:
            self._vote_deficits[post_id] = removed.vote_deficit

    def _forget_votes(self, post_id: str) -> Callable[[], None]:
        """Drop the vote history of a post whose count became authoritative."""
        trails = self._vote_trails.pop(post_id, None)
        deficit = self._vote_deficits.pop(post_id, None)

        def undo() -> None:
            if self._index(post_id) is None:
                return
            if trails is not None:
                self._vote_trails[post_id] = trails
            if deficit is not None:
                self._vote_deficits[post_id] = deficit

        return undo

    def _shift_count(self, post_id: str, delta: int) -> None:
        """Move the live count by ``delta``, remembering what the zero floor swallowed."""
        count = self._vote_counts.get(post_id, 0)
        deficit = self._vote_deficits.get(post_id, 0)
        if delta > 0:
            repaid = min(delta, deficit)
            deficit -= repaid
            count += delta - repaid
        elif delta < 0:
            taken = min(-delta, count)
            count -= taken
            deficit += -delta - taken
        self._vote_counts[post_id] = count
        if deficit:
            self._vote_deficits[post_id] = deficit
        else:
            self._vote_deficits.pop(post_id, None)

    def _patch(self, post_id: str, **changes) -> Callable[[], None] | None:
        """Update fields of a post record; return the undo for those fields only."""
        index = self._index(post_id)
        if index is None:
            return None
        current = self._posts[index]
        previous = {name: getattr(current, name) for name in changes}
        self._posts[index] = current.model_copy(update=changes)

        def undo() -> None:
            undo_index = self._index(post_id)
            if undo_index is not None:
                self._posts[undo_index] = self._posts[undo_index].model_copy(update=previous)

        return undo

    def _set_count(self, post_id: str, value: int) -> Callable[[], None]:
        previous = self._vote_counts.get(post_id)
        self._vote_counts[post_id] = value

        def undo() -> None:
            if self._index(post_id) is None:
                return
            if previous is None:
                self._vote_counts.pop(post_id, None)
            else:
                self._vote_counts[post_id] = previous

        return undo

    def _set_task(self, post_id: str, task: TaskRecord) -> Callable[[], None]:
        previous = self._tasks.get(post_id)
        self._tasks[post_id] = task

        def undo() -> None:
            if previous is None:
                self._tasks.pop(post_id, None)
            elif self._index(post_id) is not None:
                self._tasks[post_id] = previous

        return undo

    # =========================================================================
    # Mutators
    # =========================================================================

    def initialize(self, posts: Iterable[PostRecord], tasks: Iterable[TaskRecord] = ()) -> Rollback:
        """Replace the whole board state (initial load or full refresh)."""
        snapshot = (
            list(self._posts),
            dict(self._tasks),
            dict(self._vote_counts),
            self._vote_trails,
            self._vote_deficits,
        )

        self._posts = []
        seen: set[str] = set()
        for post in posts:
            if post.id not in seen:
                seen.add(post.id)
                self._posts.append(post)
        self._vote_counts = {post.id: post.vote_count for post in self._posts}
        self._tasks = {task.post_id: task for task in tasks if task.post_id in seen}
        self._vote_trails = {}
        self._vote_deficits = {}

        def undo() -> None:
            self._posts, self._tasks, self._vote_counts = (
                list(snapshot[0]),
                dict(snapshot[1]),
                dict(snapshot[2]),
            )
            self._vote_trails, self._vote_deficits = snapshot[3], snapshot[4]

        self._notify("initialize")
        return Rollback("initialize", None, undo)

    def add_post(self, post: PostRecord) -> Rollback:
        """Append a post; a duplicate id (redelivered message) is a no-op."""
        if self._index(post.id) is not None:
            return Rollback.unchanged("add_post", post.id)
        self._posts.append(post)
        self._vote_counts[post.id] = post.vote_count

        def undo() -> None:
            self._drop(post.id)

        self._notify("add_post", post.id)
        return Rollback("add_post", post.id, undo)

    def remove_post(self, post_id: str) -> Rollback:
        """Remove a post together with its task and live count."""
        removed = self._drop(post_id)
        if removed is None:
            return Rollback.unchanged("remove_post", post_id)
        self._notify("remove_post", post_id)
        return Rollback("remove_post", post_id, lambda: self._restore(removed))

    def replace_post(self, post: PostRecord) -> Rollback:
        """Swap in an authoritative record; the live count resets to its vote_count."""
        index = self._index(post.id)
        if index is None:
            return Rollback.unchanged("replace_post", post.id)
        previous = self._posts[index]
        self._posts[index] = post
        undo_count = self._set_count(post.id, post.vote_count)
        undo_votes = self._forget_votes(post.id)

        def undo() -> None:
            undo_index = self._index(post.id)
            if undo_index is not None:
                self._posts[undo_index] = previous
            undo_count()
            undo_votes()

        self._notify("replace_post", post.id)
        return Rollback("replace_post", post.id, undo)

    def update_post_content(self, post_id: str, content: str) -> Rollback:
        undo = self._patch(post_id, content=content)
        if undo is None:
            return Rollback.unchanged("update_post_content", post_id)
        self._notify("update_post_content", post_id)
        return Rollback("update_post_content", post_id, undo)

    def update_post_type(self, post_id: str, post_type: PostType | int) -> Rollback:
        undo = self._patch(post_id, type=PostType(post_type))
        if undo is None:
            return Rollback.unchanged("update_post_type", post_id)
        self._notify("update_post_type", post_id)
        return Rollback("update_post_type", post_id, undo)

    def increment_vote_count(self, post_id: str) -> Rollback:
        if self._index(post_id) is None:
            return Rollback.unchanged("increment_vote_count", post_id)
        self._vote_counts[post_id] = self._vote_counts.get(post_id, 0) + 1
        self._notify("increment_vote_count", post_id)
        return Rollback("increment_vote_count", post_id, lambda: self._step_count(post_id, -1))

    def decrement_vote_count(self, post_id: str) -> Rollback:
        """Decrement, saturating at zero; below zero nothing happens."""
        if self._index(post_id) is None or self._vote_counts.get(post_id, 0) <= 0:
            return Rollback.unchanged("decrement_vote_count", post_id)
        self._vote_counts[post_id] -= 1
        self._notify("decrement_vote_count", post_id)
        return Rollback("decrement_vote_count", post_id, lambda: self._step_count(post_id, 1))

    def _step_count(self, post_id: str, delta: int) -> None:
        if self._index(post_id) is not None:
            self._vote_counts[post_id] = max(0, self._vote_counts.get(post_id, 0) + delta)

    def apply_vote(self, post_id: str, user_id: str, operation: str, timestamp: int) -> Rollback:
        """Apply another user's vote delivered by the bus.

        A vote at or between the timestamps already seen for this user and
        post is a redelivery or superseded, and changes nothing. Otherwise
        the count moves by the change in that user's net effect, so any
        delivery order of the same votes ends on the same count.
        """
        if self._index(post_id) is None:
            return Rollback.unchanged("apply_vote", post_id)

        trails = self._vote_trails.setdefault(post_id, {})
        trail = trails.get(user_id)
        if trail is None:
            before = 0
            updated = _VoteTrail(timestamp, operation, timestamp, operation)
        elif trail.first_timestamp <= timestamp <= trail.last_timestamp:
            logger.debug("vote_superseded", post_id=post_id, user_id=user_id, timestamp=timestamp)
            return Rollback.unchanged("apply_vote", post_id)
        elif timestamp < trail.first_timestamp:
            before = trail.effect()
            updated = replace(trail, first_timestamp=timestamp, first_operation=operation)
        else:
            before = trail.effect()
            updated = replace(trail, last_timestamp=timestamp, last_operation=operation)

        previous_count = self._vote_counts.get(post_id, 0)
        previous_deficit = self._vote_deficits.get(post_id)
        trails[user_id] = updated
        self._shift_count(post_id, updated.effect() - before)

        def undo() -> None:
            if self._index(post_id) is None:
                return
            user_trails = self._vote_trails.setdefault(post_id, {})
            if trail is None:
                user_trails.pop(user_id, None)
            else:
                user_trails[user_id] = trail
            self._vote_counts[post_id] = previous_count
            if previous_deficit is None:
                self._vote_deficits.pop(post_id, None)
            else:
                self._vote_deficits[post_id] = previous_deficit

        self._notify("apply_vote", post_id)
        return Rollback("apply_vote", post_id, undo)

    def upsert_task(self, task: TaskRecord) -> Rollback:
        """Create or overwrite the task of ``task.post_id``."""
        if self._index(task.post_id) is None:
            return Rollback.unchanged("upsert_task", task.post_id)
        undo = self._set_task(task.post_id, task)
        self._notify("upsert_task", task.post_id)
        return Rollback("upsert_task", task.post_id, undo)

    def _task_for(self, post_id: str) -> TaskRecord | None:
        task = self._tasks.get(post_id)
        if task is not None:
            return task
        post = self.get_post(post_id)
        if post is None:
            return None
        return TaskRecord(post_id=post_id, board_id=post.board_id)

    def assign_task(self, post_id: str, user_id: str | None) -> Rollback:
        """Set the assignee, creating the task lazily."""
        task = self._task_for(post_id)
        if task is None:
            return Rollback.unchanged("assign_task", post_id)
        undo = self._set_task(post_id, task.model_copy(update={"user_id": user_id}))
        self._notify("assign_task", post_id)
        return Rollback("assign_task", post_id, undo)

    def update_task_state(self, post_id: str, state: TaskState | int) -> Rollback:
        """Set the task state, creating the task lazily."""
        task = self._task_for(post_id)
        if task is None:
            return Rollback.unchanged("update_task_state", post_id)
        undo = self._set_task(post_id, task.model_copy(update={"state": TaskState(state)}))
        self._notify("update_task_state", post_id)
        return Rollback("update_task_state", post_id, undo)

    def merge_posts(self, target_post_id: str, source_post_ids: Iterable[str], merged_content: str) -> Rollback:
        """Optimistic merge: rewrite the target's content and drop the sources.

        The target's vote count is left alone until the server reports the
        unique count.
        """
        if self._index(target_post_id) is None:
            return Rollback.unchanged("merge_posts", target_post_id)

        steps: list[Callable[[], None]] = []
        undo_content = self._patch(target_post_id, content=merged_content)
        if undo_content is not None:
            steps.append(undo_content)

        removed = [
            item
            for item in (self._drop(pid) for pid in source_post_ids if pid != target_post_id)
            if item is not None
        ]

        def undo_removals() -> None:
            # Reverse removal order: each index was recorded on the shrunken list
            for item in reversed(removed):
                self._restore(item)

        steps.append(undo_removals)
        self._notify("merge_posts", target_post_id, *(item.post.id for item in removed))
        return Rollback("merge_posts", target_post_id, _chain(steps))

    def apply_merge(
        self,
        merged_post: PostRecord,
        unique_vote_count: int,
        deleted_post_ids: Iterable[str],
    ) -> Rollback:
        """Apply an authoritative merge result received from another client.

        Once every deleted post is already gone the merge has been applied
        before, and applying it again changes nothing.
        """
        deleted = [pid for pid in deleted_post_ids if pid != merged_post.id]
        present = [pid for pid in deleted if self._index(pid) is not None]
        if not present:
            return Rollback.unchanged("apply_merge", merged_post.id)

        steps: list[Callable[[], None]] = []
        merged = merged_post.model_copy(update={"vote_count": unique_vote_count})
        index = self._index(merged.id)
        if index is None:
            self._posts.append(merged)
            steps.append(lambda: self._drop(merged.id))
        else:
            previous = self._posts[index]
            self._posts[index] = merged

            def undo_target() -> None:
                undo_index = self._index(merged.id)
                if undo_index is not None:
                    self._posts[undo_index] = previous

            steps.append(undo_target)
        steps.append(self._set_count(merged.id, unique_vote_count))
        steps.append(self._forget_votes(merged.id))

        removed = [item for item in (self._drop(pid) for pid in present) if item is not None]

        def undo_removals() -> None:
            for item in reversed(removed):
                self._restore(item)

        steps.append(undo_removals)
        self._notify("apply_merge", merged.id, *present)
        return Rollback("apply_merge", merged.id, _chain(steps))

    def rollback(self, rollback: Rollback) -> None:
        """Apply the inverse captured by a previous mutator."""
        if not rollback.applied:
            return
        rollback.undo()
        self._notify(f"rollback:{rollback.operation}", rollback.post_id)
