"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from retroboard.api import router as api_router
from retroboard.config import get_settings
from retroboard.db.session import close_db, init_db
from retroboard.exceptions import RetroboardError
from retroboard.middleware.logging import LoggingMiddleware
from retroboard.middleware.request_id import RequestIDMiddleware

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("app_starting", app_name=settings.app_name, version=settings.app_version)
    await init_db()

    yield

    logger.info("app_stopping", app_name=settings.app_name)
    await close_db()


async def retroboard_error_handler(request: Request, exc: RetroboardError) -> ORJSONResponse:
    """Map domain errors to ``{detail, code, context}`` with the error's status."""
    if exc.status_code >= 500:
        logger.error("request_error", code=exc.code, error=exc.message, context=exc.context)
    else:
        logger.info("request_rejected", code=exc.code, error=exc.message)
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "context": exc.context},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Collaborative retrospective boards with realtime updates",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Last added runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    # Trust X-Forwarded-* from the reverse proxy
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    app.add_exception_handler(RetroboardError, retroboard_error_handler)
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()
