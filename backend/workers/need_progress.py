"""
Need Progress Worker — Periodic rollup of vessel discharges into needs.

Runs the fulfillment aggregator over every active need so progress
percentages stay current without anyone calling POST /needs/update-progress.
Each need is committed individually by the aggregator; a retry re-runs the
whole batch, which is safe because the rollup is idempotent.

Schedule: every settings.need_progress_refresh_minutes (default 60)
Queue: sync
"""

import asyncio
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


@celery_app.task(
    name="workers.need_progress.refresh_need_progress",
    bind=True,
    max_retries=2,
    default_retry_delay=120,
    acks_late=True,
)
def refresh_need_progress(self):
    """Recompute progress for all active needs from discharged vessels."""
    run_id = self.request.id or "manual"
    logger.info("need_progress.started", run_id=run_id)

    async def _refresh():
        from core.config import get_settings
        from trade.fulfillment import update_needs_progress_from_vessels

        settings = get_settings()
        engine = create_async_engine(settings.database_url)
        try:
            async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with async_session() as db:
                result = await update_needs_progress_from_vessels(db)
        finally:
            await engine.dispose()

        summary = {
            "status": "success",
            "run_id": run_id,
            **result,
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.info("need_progress.completed", **summary)
        return summary

    try:
        return asyncio.run(_refresh())
    except Exception as exc:
        logger.error("need_progress.failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
