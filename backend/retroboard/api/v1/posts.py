"""Post endpoints: create, edit, move, delete and merge."""

from fastapi import APIRouter, status

from retroboard.api.deps import CurrentUserId
from retroboard.db.session import DBSession
from retroboard.realtime.schemas import (
    MergeOutcome,
    MergeRequest,
    PostContentChange,
    PostCreate,
    PostRecord,
    PostTypeChange,
)
from retroboard.services import MergeEngine, PostService, require_board_role

router = APIRouter()


@router.post("/{board_id}/posts", response_model=PostRecord, status_code=status.HTTP_201_CREATED)
async def create_post(
    board_id: str,
    body: PostCreate,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> PostRecord:
    await require_board_role(db, board_id, current_user_id)
    post = await PostService(db).create_post(
        board_id,
        body.content,
        body.type,
        author=current_user_id,
        post_id=body.id,
        created_at=body.created_at,
    )
    return PostRecord.from_model(post)


@router.patch("/{board_id}/posts/{post_id}/content", response_model=PostRecord)
async def update_post_content(
    board_id: str,
    post_id: str,
    body: PostContentChange,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> PostRecord:
    await require_board_role(db, board_id, current_user_id)
    post = await PostService(db).update_content(post_id, board_id, body.content)
    return PostRecord.from_model(post)


@router.patch("/{board_id}/posts/{post_id}/type", response_model=PostRecord)
async def update_post_type(
    board_id: str,
    post_id: str,
    body: PostTypeChange,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> PostRecord:
    await require_board_role(db, board_id, current_user_id)
    post = await PostService(db).update_type(post_id, board_id, body.type)
    return PostRecord.from_model(post)


@router.delete("/{board_id}/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    board_id: str,
    post_id: str,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> None:
    await require_board_role(db, board_id, current_user_id)
    await PostService(db).delete_post(post_id, board_id)


@router.post("/{board_id}/merge", response_model=MergeOutcome)
async def merge_posts(
    board_id: str,
    body: MergeRequest,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> MergeOutcome:
    """Merge source posts into the target, carrying over one vote per user."""
    await require_board_role(db, board_id, current_user_id)
    result = await MergeEngine(db).merge(
        board_id,
        body.target_post_id,
        body.source_post_ids,
        body.merged_content,
    )
    return MergeOutcome(
        merged_post=PostRecord.from_model(result.merged_post),
        unique_vote_count=result.unique_vote_count,
        deleted_post_ids=result.deleted_post_ids,
    )
