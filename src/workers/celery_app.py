"""
Celery application for the booking poller.

Run with:
    celery -A src.workers worker --beat --loglevel=info
"""

from __future__ import annotations

from celery import Celery

from src.config import get_settings


settings = get_settings()

celery_app = Celery(
    "booking_relay",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["src.workers.poller"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # One poll tick at a time per worker process.
    worker_prefetch_multiplier=1,
    result_expires=3600,
)

app = celery_app
