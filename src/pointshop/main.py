"""FastAPI application entrypoint for the points shop."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .api.v1.router import api_router
from .core.config import Settings, get_settings
from .core.database import build_engine, build_session_factory, create_schema
from .core.errors import PointshopError
from .jobs import register_scheduler
from .services.approval_dispatcher import ApprovalDispatcher
from .services.catalog_service import load_catalog
from .services.credential_service import IdentityProviderClient
from .services.review_channel import DiscordReviewChannel

logger = logging.getLogger(__name__)


async def pointshop_error_handler(request: Request, exc: PointshopError) -> JSONResponse:
    # 5xx details may carry provider or store internals
    message = exc.detail if exc.status_code < 500 else exc.public_message
    return JSONResponse(status_code=exc.status_code, content={"error": True, "message": message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": True, "message": "Invalid request"})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": True, "message": PointshopError.public_message})


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    identity_provider: Optional[IdentityProviderClient] = None,
    review_channel: Optional[DiscordReviewChannel] = None,
) -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Pointshop API", version="0.1.0")

    engine = None
    if session_factory is None:
        engine = build_engine(settings.database_url)
        session_factory = build_session_factory(engine)

    identity_provider = identity_provider or IdentityProviderClient(
        client_id=settings.oauth_client_id,
        client_secret=settings.oauth_client_secret,
        redirect_uri=settings.oauth_redirect_uri,
        token_url=settings.oauth_token_url,
        profile_url=settings.oauth_profile_url,
        avatar_cdn_url=settings.avatar_cdn_url,
        timeout=settings.http_timeout_seconds,
    )
    review_channel = review_channel or DiscordReviewChannel(
        bot_token=settings.discord_bot_token,
        channel_id=settings.review_channel_id,
        api_url=settings.discord_api_url,
        avatar_cdn_url=settings.avatar_cdn_url,
        timeout=settings.http_timeout_seconds,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.catalog = load_catalog(settings.catalog_path)
    app.state.identity_provider = identity_provider
    app.state.review_channel = review_channel
    app.state.dispatcher = ApprovalDispatcher(
        review_channel,
        session_factory=session_factory,
        approve_emoji=settings.approve_emoji,
        reject_emoji=settings.reject_emoji,
        reviewer_ids=settings.reviewer_ids,
    )

    app.add_exception_handler(PointshopError, pointshop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(api_router, prefix="/api/v1")

    @app.on_event("startup")
    async def prepare_schema() -> None:
        if settings.create_schema and engine is not None:
            await create_schema(engine)
            logger.info("database schema ensured")

    @app.on_event("shutdown")
    async def close_clients() -> None:
        await app.state.dispatcher.drain()
        await identity_provider.aclose()
        await review_channel.aclose()
        if engine is not None:
            await engine.dispose()

    if settings.review_sync_enabled:
        register_scheduler(app)
    return app


def get_app() -> FastAPI:
    """Factory for ``uvicorn --factory pointshop.main:get_app``."""

    return create_app()
