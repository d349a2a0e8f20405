"""Board, membership, post, vote and task models for retrospective boards."""

from enum import IntEnum

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retroboard.db.base import BaseModel


class PostType(IntEnum):
    """The four fixed post categories of a retrospective."""

    WENT_WELL = 0
    TO_IMPROVE = 1
    DISCUSSION = 2
    ACTION_ITEM = 3


class TaskState(IntEnum):
    """Lifecycle of the task attached to an action item."""

    PENDING = 0
    IN_PROGRESS = 1
    COMPLETED = 2
    CANCELLED = 3


class Role(IntEnum):
    """Board roles; lower value means more privilege."""

    OWNER = 0
    MEMBER = 1
    GUEST = 2


class Board(BaseModel):
    """Shared workspace for one retrospective session."""

    __tablename__ = "boards"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    creator_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    posts: Mapped[list["Post"]] = relationship(
        "Post", back_populates="board", cascade="all, delete-orphan"
    )
    members: Mapped[list["BoardMember"]] = relationship(
        "BoardMember", back_populates="board", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Board {self.id} title={self.title!r}>"


class BoardMember(BaseModel):
    """A user's role on a board."""

    __tablename__ = "board_members"
    __table_args__ = (
        UniqueConstraint("board_id", "user_id", name="uq_board_member_board_user"),
    )

    board_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[int] = mapped_column(Integer, nullable=False, default=Role.MEMBER)

    board: Mapped["Board"] = relationship("Board", back_populates="members")

    def __repr__(self) -> str:
        return f"<BoardMember board={self.board_id} user={self.user_id} role={self.role}>"


class Post(BaseModel):
    """A categorized content item on a board."""

    __tablename__ = "posts"
    __table_args__ = (
        CheckConstraint("vote_count >= 0", name="ck_post_vote_count_non_negative"),
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str | None] = mapped_column(String(64), nullable=True)
    board_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    post_type: Mapped[int] = mapped_column(Integer, nullable=False)
    # Cached count of vote rows; recomputed from rows, never incremented
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    board: Mapped["Board"] = relationship("Board", back_populates="posts")
    votes: Mapped[list["Vote"]] = relationship(
        "Vote", back_populates="post", cascade="all, delete-orphan", passive_deletes=True
    )
    task: Mapped["Task | None"] = relationship(
        "Task", back_populates="post", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Post {self.id} board={self.board_id} type={self.post_type}>"


class Vote(BaseModel):
    """A user's endorsement of a post: a presence fact, never updated in place."""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("board_id", "user_id", "post_id", name="uq_vote_board_user_post"),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    post_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    board_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    post: Mapped["Post"] = relationship("Post", back_populates="votes")

    def __repr__(self) -> str:
        return f"<Vote post={self.post_id} user={self.user_id}>"


class Task(BaseModel):
    """Assignment and status of an action-item post (at most one per post)."""

    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("post_id", name="uq_task_post"),
    )

    post_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    board_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    state: Mapped[int] = mapped_column(Integer, nullable=False, default=TaskState.PENDING)

    post: Mapped["Post"] = relationship("Post", back_populates="task")

    def __repr__(self) -> str:
        return f"<Task {self.id} post={self.post_id} state={self.state}>"
