"""Per-kind payload schemas for realtime messages.

Payloads travel in camelCase (``boardId``, ``voteCount``); models accept
either the alias or the field name and dump by alias with ``to_wire``.
Post and task records double as the client store's entity types, so they
are frozen: a snapshot taken for rollback can never be mutated.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from retroboard.models.board import Board, BoardMember, Post, PostType, Role, Task, TaskState

NonEmptyStr = Annotated[str, Field(min_length=1)]
EpochMillis = Annotated[int, Field(gt=0)]


class WireModel(BaseModel):
    """Base for everything that crosses the bus."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class PostRecord(WireModel):
    """Full post projection (``POST_ADD`` payload, merged post)."""

    id: NonEmptyStr
    content: NonEmptyStr
    type: PostType
    author: str | None
    board_id: NonEmptyStr
    vote_count: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, post: Post) -> "PostRecord":
        return cls(
            id=post.id,
            content=post.content,
            type=PostType(post.post_type),
            author=post.author,
            board_id=post.board_id,
            vote_count=post.vote_count,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class PostContentUpdate(WireModel):
    id: NonEmptyStr
    content: NonEmptyStr


class PostTypeUpdate(WireModel):
    id: NonEmptyStr
    type: PostType


class PostDelete(WireModel):
    id: NonEmptyStr


class VoteEvent(WireModel):
    """Vote delta; ``id`` is the post id, ``timestamp`` epoch milliseconds."""

    id: NonEmptyStr
    operation: Literal["upvote", "downvote"]
    user_id: NonEmptyStr
    timestamp: EpochMillis


class TaskRecord(WireModel):
    """Task state as held by the client store.

    ``id`` and ``board_id`` are unknown until the task has been created
    remotely, so both are optional here.
    """

    post_id: NonEmptyStr
    id: str | None = None
    board_id: str | None = None
    user_id: str | None = None
    state: TaskState = TaskState.PENDING


class TaskCreate(TaskRecord):
    """``ACTION_CREATE`` payload: a task with its identity."""

    id: NonEmptyStr
    board_id: NonEmptyStr

    @classmethod
    def from_model(cls, task: Task) -> "TaskCreate":
        return cls(
            id=task.id,
            post_id=task.post_id,
            board_id=task.board_id,
            user_id=task.user_id,
            state=TaskState(task.state),
        )


class TaskAssign(WireModel):
    post_id: NonEmptyStr
    user_id: str | None = None


class TaskStateUpdate(WireModel):
    post_id: NonEmptyStr
    state: TaskState


class PostMerge(WireModel):
    """``POST_MERGE`` payload: authoritative result of a committed merge."""

    target_post_id: NonEmptyStr
    source_post_ids: list[NonEmptyStr] = Field(min_length=1)
    merged_post: PostRecord
    unique_vote_count: int = Field(ge=0)
    deleted_post_ids: list[NonEmptyStr]
    timestamp: EpochMillis


# =============================================================================
# Request/response contracts shared by the API and its clients
# =============================================================================


class PostCreate(WireModel):
    """Create a post; ``id`` and ``createdAt`` may be chosen by the client."""

    content: NonEmptyStr
    type: PostType
    id: str | None = None
    created_at: datetime | None = None


class PostContentChange(WireModel):
    content: NonEmptyStr


class PostTypeChange(WireModel):
    type: PostType


class TaskAssigneeChange(WireModel):
    user_id: str | None = None


class TaskStateChange(WireModel):
    state: TaskState


class TaskChange(WireModel):
    """Result of an assign/state call; ``created`` when the task was made lazily."""

    task: TaskCreate
    created: bool


class VoteCount(WireModel):
    vote_count: int = Field(ge=0)
    removed: bool | None = None


class MergeRequest(WireModel):
    target_post_id: NonEmptyStr
    source_post_ids: list[NonEmptyStr] = Field(min_length=1)
    # Omitted: the server combines the posts' contents
    merged_content: NonEmptyStr | None = None


class MergeOutcome(WireModel):
    """Committed merge: ``{mergedPost, uniqueVoteCount, deletedPostIds}``."""

    merged_post: PostRecord
    unique_vote_count: int = Field(ge=0)
    deleted_post_ids: list[str]


class BoardSnapshot(WireModel):
    posts: list[PostRecord]
    tasks: list[TaskCreate]


class PublishRequest(WireModel):
    kind: NonEmptyStr
    payload: Any = None


class BoardCreate(WireModel):
    title: NonEmptyStr


class BoardRecord(WireModel):
    id: str
    title: str
    creator_id: str | None = None
    created_at: datetime

    @classmethod
    def from_model(cls, board: Board) -> "BoardRecord":
        return cls(
            id=board.id,
            title=board.title,
            creator_id=board.creator_id,
            created_at=board.created_at,
        )


class MemberChange(WireModel):
    user_id: NonEmptyStr
    role: Role = Role.MEMBER


class MemberRecord(WireModel):
    board_id: str
    user_id: str
    role: Role

    @classmethod
    def from_model(cls, member: BoardMember) -> "MemberRecord":
        return cls(board_id=member.board_id, user_id=member.user_id, role=Role(member.role))
