from src.workers.celery_app import celery_app
from src.workers.poller import poll_bookings_task

__all__ = ["celery_app", "poll_bookings_task"]
