"""Board, membership and snapshot endpoints."""

from fastapi import APIRouter, status

from retroboard.api.deps import CurrentUserId
from retroboard.db.session import DBSession
from retroboard.models.board import Role
from retroboard.realtime.schemas import (
    BoardCreate,
    BoardRecord,
    BoardSnapshot,
    MemberChange,
    MemberRecord,
    PostRecord,
    TaskCreate,
)
from retroboard.services import BoardService, PostService, TaskService, require_board_role

router = APIRouter()


@router.post("", response_model=BoardRecord, status_code=status.HTTP_201_CREATED)
async def create_board(body: BoardCreate, current_user_id: CurrentUserId, db: DBSession) -> BoardRecord:
    board = await BoardService(db).create_board(body.title, current_user_id)
    return BoardRecord.from_model(board)


@router.get("/{board_id}", response_model=BoardRecord)
async def get_board(board_id: str, current_user_id: CurrentUserId, db: DBSession) -> BoardRecord:
    board = await BoardService(db).get_board(board_id)
    await require_board_role(db, board_id, current_user_id, Role.GUEST)
    return BoardRecord.from_model(board)


@router.put("/{board_id}/members", response_model=MemberRecord)
async def set_board_member(
    board_id: str,
    body: MemberChange,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> MemberRecord:
    """Add a member or change a role. Owners only."""
    await require_board_role(db, board_id, current_user_id, Role.OWNER)
    member = await BoardService(db).set_member(board_id, body.user_id, body.role)
    return MemberRecord.from_model(member)


@router.get("/{board_id}/posts", response_model=BoardSnapshot)
async def get_board_snapshot(board_id: str, current_user_id: CurrentUserId, db: DBSession) -> BoardSnapshot:
    """Everything a client needs to initialize its store."""
    await require_board_role(db, board_id, current_user_id, Role.GUEST)
    posts = await PostService(db).list_posts(board_id)
    tasks = await TaskService(db).list_tasks(board_id)
    return BoardSnapshot(
        posts=[PostRecord.from_model(post) for post in posts],
        tasks=[TaskCreate.from_model(task) for task in tasks],
    )
