"""
Polling Worker — Celery task that periodically pulls new bookings from Wix.

Polling is the fallback for sites where webhooks are not configured or are
unreliable. Each polled booking goes through the same relay path as a webhook
delivery, so a booking seen by both is notified once as long as both processes
share the dedup store (DEDUP_BACKEND=redis).

Workflow per tick:
1. Query bookings created after the last watermark
2. For each booking, build an InboundEvent (no provider event id)
3. Hand it to BookingRelay.handle_event()
4. Advance the watermark to the newest createdDate seen
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from src.config import get_settings
from src.core.events import InboundEvent
from src.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

POLLED_EVENT_TYPE = "booking_created"

# Newest createdDate seen by this worker process (ISO string). In-memory:
# after a restart the first tick looks back one dedup window.
_watermark: dict[str, str | None] = {"created_after": None}

# Keep one asyncio loop per worker process. The relay's HTTP and Redis clients
# must not be shared across loops.
_worker_loop: asyncio.AbstractEventLoop | None = None


def _get_worker_loop() -> asyncio.AbstractEventLoop:
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
    asyncio.set_event_loop(_worker_loop)
    return _worker_loop


@celery_app.task(name="relay.poll_bookings")
def poll_bookings_task():
    """
    Celery task entry point. Runs the async polling logic.

    Scheduled via celery beat every POLL_INTERVAL_SECONDS when POLLING_ENABLED.
    """
    loop = _get_worker_loop()
    return loop.run_until_complete(_poll_bookings())


def booking_to_event(booking: dict) -> InboundEvent:
    """Wrap a polled booking in the same envelope shape as a webhook delivery."""
    data = dict(booking)
    if booking.get("id") and not booking.get("booking_id"):
        data["booking_id"] = booking["id"]
    return InboundEvent(
        raw_payload={"event_type": POLLED_EVENT_TYPE, "data": data},
        provider_event_id=None,
        source="poller",
    )


async def _poll_bookings() -> dict:
    """Single polling tick. Returns counters for logging/monitoring."""
    from src.core.relay import get_relay

    settings = get_settings()
    relay = get_relay()

    since = _watermark["created_after"]
    if since is None:
        lookback = datetime.now(timezone.utc) - timedelta(seconds=settings.dedup_ttl_seconds)
        since = lookback.isoformat().replace("+00:00", "Z")

    backend = relay.gateway.backend
    result = await backend.execute("query_bookings", {"since": since})
    if not result.get("success"):
        logger.error("Booking poll failed: %s %s", result.get("status"), result.get("body") or result.get("error"))
        return {"polled": 0, "notified": 0, "error": result.get("error")}

    counters = {"polled": 0, "notified": 0, "duplicate": 0}
    for booking in result.get("bookings", []):
        counters["polled"] += 1
        try:
            outcome = await relay.handle_event(booking_to_event(booking))
        except Exception as e:
            logger.exception("Polling error for booking %s: %s", booking.get("id"), e)
            continue

        if outcome.get("status") in ("notified", "duplicate"):
            counters[outcome["status"]] += 1
        elif outcome.get("status") == "undelivered":
            # Channel is down; resume from this booking on the next tick.
            break

        created = booking.get("createdDate")
        if created and (_watermark["created_after"] is None or created > _watermark["created_after"]):
            _watermark["created_after"] = created

    if counters["polled"]:
        logger.info("Booking poll: %s", counters)
    return counters


# --- Celery Beat Schedule ---

if get_settings().polling_enabled:
    if get_settings().dedup_backend == "memory":
        logger.warning("Polling with DEDUP_BACKEND=memory: webhook and poller deliveries are not deduplicated against each other")
    celery_app.conf.beat_schedule = {
        "poll-bookings": {
            "task": "relay.poll_bookings",
            "schedule": get_settings().poll_interval_seconds,
            # A tick still queued when the next one is due is dropped.
            "options": {"expires": get_settings().poll_interval_seconds},
        },
    }
