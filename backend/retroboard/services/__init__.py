"""Services package."""

from retroboard.services.access_control import (
    get_member_role,
    has_required_role,
    require_board_role,
)
from retroboard.services.boards import BoardService
from retroboard.services.merge import (
    MergeEngine,
    MergeResult,
    combine_contents,
    validate_merge_request,
)
from retroboard.services.posts import PostService
from retroboard.services.tasks import TaskService
from retroboard.services.votes import VoteLedger

__all__ = [
    "BoardService",
    "MergeEngine",
    "MergeResult",
    "PostService",
    "TaskService",
    "VoteLedger",
    "combine_contents",
    "get_member_role",
    "has_required_role",
    "require_board_role",
    "validate_merge_request",
]
