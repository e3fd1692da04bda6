"""
Webhook endpoints: booking events from Wix and button clicks from Telegram.

Both endpoints acknowledge with 200 whatever happens downstream, so senders
never redeliver because of our own failures. Only requests that fail the
shared-secret check are rejected.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.config import Settings, get_settings
from src.core.event_identity import provider_event_id_from_headers
from src.core.events import InboundEvent
from src.core.relay import BookingRelay, get_relay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])

WEBHOOK_SECRET_HEADER = "X-Webhook-Secret"
TELEGRAM_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def _secret_matches(provided: str | None, expected: str) -> bool:
    return bool(provided) and hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def verify_booking_webhook(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """Shared-secret check for the booking webhook (enforced unless disabled)."""
    if not settings.require_webhook_secret:
        return
    if not settings.webhook_secret:
        logger.error("REQUIRE_WEBHOOK_SECRET is on but WEBHOOK_SECRET is empty; rejecting booking webhook")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="webhook secret not configured")
    if not _secret_matches(request.headers.get(WEBHOOK_SECRET_HEADER), settings.webhook_secret):
        logger.warning("Booking webhook rejected: bad or missing %s", WEBHOOK_SECRET_HEADER)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid webhook secret")


def verify_telegram_webhook(request: Request, settings: Settings = Depends(get_settings)) -> None:
    if not settings.telegram_webhook_secret:
        return
    if not _secret_matches(request.headers.get(TELEGRAM_SECRET_HEADER), settings.telegram_webhook_secret):
        logger.warning("Telegram webhook rejected: bad or missing secret token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid secret token")


@router.post("/bookings", dependencies=[Depends(verify_booking_webhook)])
async def booking_webhook(
    request: Request,
    relay: BookingRelay = Depends(get_relay),
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    Receive booking events.

    URL pattern: POST /api/v1/webhooks/bookings
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Booking webhook: body is not JSON")
        return {"ok": True, "skipped": True}

    if not isinstance(payload, dict):
        logger.warning("Booking webhook: body is not a JSON object")
        return {"ok": True, "skipped": True}

    event = InboundEvent(
        raw_payload=payload,
        provider_event_id=provider_event_id_from_headers(request.headers, settings.event_id_header),
        source="webhook",
    )

    try:
        result = await relay.handle_event(event)
        return {"ok": True, **result}
    except Exception as e:
        logger.exception("Booking webhook error: %s", e)
        return {"ok": True, "error": str(e)}


@router.post("/telegram", dependencies=[Depends(verify_telegram_webhook)])
async def telegram_webhook(
    request: Request,
    relay: BookingRelay = Depends(get_relay),
) -> dict:
    """
    Receive Telegram Bot webhook updates (inline button presses).

    URL pattern: POST /api/v1/webhooks/telegram
    """
    try:
        payload = await request.json()
    except ValueError:
        return {"ok": True, "skipped": True}

    if not isinstance(payload, dict):
        return {"ok": True, "skipped": True}

    try:
        result = await relay.handle_update(payload)
        return {"ok": True, **result}
    except Exception as e:
        logger.exception("Telegram webhook error: %s", e)
        return {"ok": True, "error": str(e)}
