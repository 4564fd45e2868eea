"""Background scheduler for approval reconciliation."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ..services.review_sync_service import run_review_sync

logger = logging.getLogger(__name__)


async def _execute_review_sync(app: FastAPI) -> None:
    settings = app.state.settings
    try:
        summary = await run_review_sync(
            app.state.session_factory,
            dispatcher=app.state.dispatcher,
            catalog=app.state.catalog,
            redispatch_after_seconds=settings.redispatch_after_seconds,
        )
        logger.info("review sync completed: %s", summary)
    except Exception:  # pragma: no cover - safeguard for background job
        logger.exception("review sync job failed")
        raise


def register_scheduler(app: FastAPI) -> AsyncIOScheduler:
    """Attach APScheduler lifecycle hooks to the FastAPI app."""

    settings = app.state.settings
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        _execute_review_sync,
        "interval",
        seconds=settings.review_sync_interval_seconds,
        args=[app],
        id="review_sync",
        max_instances=1,
        coalesce=True,
    )

    @app.on_event("startup")
    async def start_scheduler() -> None:
        if not scheduler.running:
            scheduler.start()
            logger.info("review sync scheduler started")

    @app.on_event("shutdown")
    async def shutdown_scheduler() -> None:
        if scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("review sync scheduler stopped")

    return scheduler
