"""
Celery Application Configuration
"""

from datetime import timedelta

from celery import Celery

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "tradeops",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["workers.need_progress"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.need_progress.*": {"queue": "sync"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    beat_schedule={
        # ── Fulfillment ─────────────────────────────────────────────
        "refresh-need-progress": {
            "task": "workers.need_progress.refresh_need_progress",
            "schedule": timedelta(minutes=settings.need_progress_refresh_minutes),
            "options": {"queue": "sync"},
        },
    },
)
