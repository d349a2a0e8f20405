"""SQLAlchemy models package."""

from retroboard.models.board import (
    Board,
    BoardMember,
    Post,
    PostType,
    Role,
    Task,
    TaskState,
    Vote,
)

__all__ = [
    "Board",
    "BoardMember",
    "Post",
    "PostType",
    "Role",
    "Task",
    "TaskState",
    "Vote",
]
