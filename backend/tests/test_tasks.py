"""Lazy task creation and board scoping."""

import pytest
from sqlalchemy import select

from retroboard.exceptions import NotFoundError, WrongBoardError
from retroboard.models.board import PostType, Task, TaskState
from retroboard.services import PostService, TaskService
from tests.conftest import BOARD_ID, seed_board


async def action_item(db, post_id, board_id=BOARD_ID):
    await PostService(db).create_post(board_id, f"do {post_id}", PostType.ACTION_ITEM, "author", post_id=post_id)


@pytest.mark.anyio
async def test_first_change_creates_the_task(db):
    await seed_board(db)
    await action_item(db, "p1")
    tasks = TaskService(db)

    task, created = await tasks.assign("p1", BOARD_ID, "u1")
    again, created_again = await tasks.update_state("p1", BOARD_ID, TaskState.COMPLETED)

    assert created is True
    assert created_again is False
    assert again.id == task.id
    assert (again.user_id, again.state) == ("u1", int(TaskState.COMPLETED))


@pytest.mark.anyio
async def test_existing_task_on_another_board_cannot_be_changed(db):
    await seed_board(db)
    await seed_board(db, board_id="board-2")
    await action_item(db, "theirs", board_id="board-2")
    tasks = TaskService(db)
    await tasks.assign("theirs", "board-2", "owner-of-b")

    with pytest.raises(WrongBoardError):
        await tasks.update_state("theirs", BOARD_ID, TaskState.CANCELLED)
    with pytest.raises(NotFoundError):
        await tasks.assign("theirs", BOARD_ID, "intruder")

    result = await db.execute(select(Task.user_id, Task.state).where(Task.post_id == "theirs"))
    assert tuple(result.one()) == ("owner-of-b", int(TaskState.PENDING))
    assert await tasks.get_task("theirs", BOARD_ID) is None
