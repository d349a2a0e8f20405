"""Task persistence service for action-item posts."""

from datetime import datetime, timezone
from typing import Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retroboard.models.board import Task, TaskState
from retroboard.services.posts import PostService

logger = structlog.get_logger()


class TaskService:
    """Tasks are created lazily on the first assignment or status change."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_tasks(self, board_id: str) -> Sequence[Task]:
        result = await self.db.execute(select(Task).where(Task.board_id == board_id))
        return result.scalars().all()

    async def get_task(self, post_id: str, board_id: str) -> Task | None:
        result = await self.db.execute(
            select(Task).where(Task.post_id == post_id, Task.board_id == board_id)
        )
        return result.scalar_one_or_none()

    async def create_task(
        self,
        post_id: str,
        board_id: str,
        user_id: str | None = None,
        state: TaskState | int = TaskState.PENDING,
        task_id: str | None = None,
    ) -> Task:
        await PostService(self.db).get_post(post_id, board_id)
        task = Task(post_id=post_id, board_id=board_id, user_id=user_id, state=int(TaskState(state)))
        if task_id:
            task.id = task_id
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)

        logger.info("task_created", task_id=task.id, post_id=post_id, board_id=board_id)
        return task

    async def _get_or_create(self, post_id: str, board_id: str) -> tuple[Task, bool]:
        # Raises WrongBoardError for a post on another board
        await PostService(self.db).get_post(post_id, board_id)
        task = await self.get_task(post_id, board_id)
        if task is not None:
            return task, False
        task = Task(post_id=post_id, board_id=board_id, state=int(TaskState.PENDING))
        self.db.add(task)
        return task, True

    async def assign(self, post_id: str, board_id: str, user_id: str | None) -> tuple[Task, bool]:
        """Set the assignee; returns the task and whether it was just created."""
        task, created = await self._get_or_create(post_id, board_id)
        task.user_id = user_id
        task.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(task)

        logger.info(
            "task_assigned",
            post_id=post_id,
            board_id=board_id,
            user_id=user_id,
            created=created,
        )
        return task, created

    async def update_state(self, post_id: str, board_id: str, state: TaskState | int) -> tuple[Task, bool]:
        """Set the state; returns the task and whether it was just created."""
        task, created = await self._get_or_create(post_id, board_id)
        task.state = int(TaskState(state))
        task.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(task)

        logger.info(
            "task_state_updated",
            post_id=post_id,
            board_id=board_id,
            state=TaskState(state).name,
            created=created,
        )
        return task, created
