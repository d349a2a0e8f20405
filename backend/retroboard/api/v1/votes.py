"""Vote endpoints backed by the vote ledger."""

from fastapi import APIRouter

from retroboard.api.deps import CurrentUserId
from retroboard.db.session import DBSession
from retroboard.realtime.schemas import VoteCount
from retroboard.services import VoteLedger, require_board_role

router = APIRouter()


@router.post("/{board_id}/posts/{post_id}/vote", response_model=VoteCount)
async def up_vote(
    board_id: str,
    post_id: str,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> VoteCount:
    """Record the caller's vote. A second vote on the same post is a 409."""
    await require_board_role(db, board_id, current_user_id)
    count = await VoteLedger(db).up_vote(post_id, current_user_id, board_id)
    return VoteCount(vote_count=count)


@router.delete("/{board_id}/posts/{post_id}/vote", response_model=VoteCount)
async def down_vote(
    board_id: str,
    post_id: str,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> VoteCount:
    await require_board_role(db, board_id, current_user_id)
    removed, count = await VoteLedger(db).down_vote(post_id, current_user_id, board_id)
    return VoteCount(vote_count=count, removed=removed)


@router.get("/{board_id}/votes/me", response_model=list[str])
async def my_votes(board_id: str, current_user_id: CurrentUserId, db: DBSession) -> list[str]:
    """Ids of the posts the caller has voted on."""
    await require_board_role(db, board_id, current_user_id)
    return await VoteLedger(db).voted_post_ids(current_user_id, board_id)
