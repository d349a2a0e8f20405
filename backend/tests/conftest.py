"""Shared fixtures: in-memory database, fresh stores, fixed clocks."""

import os

# Must be set before retroboard.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

from datetime import datetime, timedelta, timezone

import pytest

import retroboard.models  # noqa: F401  registers tables on Base.metadata
from retroboard.db.base import Base
from retroboard.db.session import async_session_factory, engine
from retroboard.models.board import Board, BoardMember, PostType, Role
from retroboard.realtime.schemas import PostRecord
from retroboard.store.state import BoardStore

BOARD_ID = "board-1"
NOW_MS = 1_700_000_000_000
BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_factory() as session:
        yield session


async def seed_board(session, board_id=BOARD_ID, members=None):
    """Create a board and its memberships (user_id -> Role)."""
    members = members if members is not None else {"owner": Role.OWNER}
    session.add(Board(id=board_id, title="Sprint 42", creator_id=next(iter(members), None)))
    for user_id, role in members.items():
        session.add(BoardMember(board_id=board_id, user_id=user_id, role=int(role)))
    await session.commit()


def make_post(post_id, *, content=None, post_type=PostType.WENT_WELL, vote_count=0, minutes=0, board_id=BOARD_ID):
    created = BASE_TIME + timedelta(minutes=minutes)
    return PostRecord(
        id=post_id,
        content=content or f"content of {post_id}",
        type=post_type,
        author="author",
        board_id=board_id,
        vote_count=vote_count,
        created_at=created,
        updated_at=created,
    )


@pytest.fixture
def store():
    return BoardStore()


@pytest.fixture
def clock():
    """Mutable millisecond clock; set ``clock.now`` to move time."""

    class Clock:
        now = NOW_MS

        def __call__(self):
            return self.now

    return Clock()
