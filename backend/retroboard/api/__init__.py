"""API router package."""

from fastapi import APIRouter

from retroboard.api.v1 import boards, events, health, posts, tasks, votes, websocket

router = APIRouter()

router.include_router(health.router, tags=["Health"])
router.include_router(boards.router, prefix="/boards", tags=["Boards"])
router.include_router(posts.router, prefix="/boards", tags=["Posts"])
router.include_router(votes.router, prefix="/boards", tags=["Votes"])
router.include_router(tasks.router, prefix="/boards", tags=["Tasks"])
router.include_router(events.router, prefix="/boards", tags=["Events"])
router.include_router(websocket.router, tags=["WebSocket"])
