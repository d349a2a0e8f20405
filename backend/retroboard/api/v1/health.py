"""Liveness and readiness probes."""

from fastapi import APIRouter
from sqlalchemy import text

from retroboard.config import get_settings
from retroboard.db.session import DBSession
from retroboard.realtime.broker import broker

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(db: DBSession) -> dict:
    """Database round trip plus the number of live board channels."""
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except Exception as e:
        database = f"unhealthy: {e}"

    return {
        "status": "healthy" if database == "healthy" else "unhealthy",
        "version": settings.app_version,
        "checks": {"database": database},
        "active_channels": len(broker.channels),
    }
