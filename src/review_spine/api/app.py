"""
FastAPI application factory.

``create_app()`` wires the review router, error handlers and lifespan
into a single ``FastAPI`` instance.  Tests pass a ready-made manager;
otherwise one is built from settings at startup and closed at shutdown.

Tags:
    review-spine, api, app-factory, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from review_spine import __version__
from review_spine.api.errors import review_error_handler, value_error_handler
from review_spine.api.routers import review
from review_spine.core.errors import ReviewSpineError
from review_spine.core.logging import get_logger
from review_spine.core.settings import ReviewSpineSettings, get_settings
from review_spine.scheduling.manager import ReviewServiceManager, build_manager


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build the manager if none was injected."""
    log = get_logger("review_spine.api")
    owned = app.state.manager is None
    if owned:
        app.state.manager = build_manager(app.state.settings)
    log.info("review-spine API starting", version=app.version)
    yield
    log.info("review-spine API shutting down")
    if owned:
        app.state.manager.close()
        app.state.manager = None


def create_app(
    manager: ReviewServiceManager | None = None,
    settings: ReviewSpineSettings | None = None,
) -> FastAPI:
    """Build and return a configured FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="review-spine",
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )
    app.state.settings = settings
    app.state.manager = manager

    app.add_exception_handler(ReviewSpineError, review_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    app.include_router(review.router, prefix=settings.api_prefix, tags=["review"])
    return app
