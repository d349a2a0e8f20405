"""Task endpoints for action-item posts.

Guests may read a board but never change its tasks.
"""

from fastapi import APIRouter

from retroboard.api.deps import CurrentUserId
from retroboard.db.session import DBSession
from retroboard.models.board import Role
from retroboard.realtime.schemas import (
    TaskAssigneeChange,
    TaskChange,
    TaskCreate,
    TaskStateChange,
)
from retroboard.services import TaskService, require_board_role

router = APIRouter()


@router.put("/{board_id}/posts/{post_id}/task/assignee", response_model=TaskChange)
async def assign_task(
    board_id: str,
    post_id: str,
    body: TaskAssigneeChange,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> TaskChange:
    await require_board_role(db, board_id, current_user_id, Role.MEMBER)
    task, created = await TaskService(db).assign(post_id, board_id, body.user_id)
    return TaskChange(task=TaskCreate.from_model(task), created=created)


@router.put("/{board_id}/posts/{post_id}/task/state", response_model=TaskChange)
async def update_task_state(
    board_id: str,
    post_id: str,
    body: TaskStateChange,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> TaskChange:
    await require_board_role(db, board_id, current_user_id, Role.MEMBER)
    task, created = await TaskService(db).update_state(post_id, board_id, body.state)
    return TaskChange(task=TaskCreate.from_model(task), created=created)
