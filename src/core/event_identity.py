"""
Event identity — stable dedup keys for inbound booking events.

Key forms:
    hdr:<provider event id>        delivery id from the transport (authoritative)
    hash:<32 hex chars>            SHA-256 over the event type and the discriminating booking fields

The event type is part of the hashed material, so a cancellation or a
reschedule of a booking is a new event, not a repeat of its creation. A
missing event type counts as booking_created, the type the poller assigns.

Events with neither an id nor any discriminating field get no key and are
treated as unique: repeated deliveries of such events are notified again.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping

from src.core.events import BookingEvent, InboundEvent, normalize_event_type, parse_booking_event

HEADER_PREFIX = "hdr:"
HASH_PREFIX = "hash:"
HASH_LENGTH = 32

DEFAULT_EVENT_TYPE = "booking_created"

# Fields hashed when the payload carries no booking/order id.
COMPOSITE_FIELDS = ("service_name", "start", "end", "staff_id", "price", "remaining_due")


def provider_event_id_from_headers(headers: Mapping[str, str], header_name: str) -> str | None:
    """Case-insensitive lookup of the delivery-identifier header."""
    wanted = header_name.lower()
    for name, value in headers.items():
        if name.lower() == wanted:
            value = (value or "").strip()
            return value or None
    return None


def derive_dedup_key(event: InboundEvent, booking: BookingEvent | None = None) -> str | None:
    if event.provider_event_id:
        return f"{HEADER_PREFIX}{event.provider_event_id}"

    if booking is None:
        booking = parse_booking_event(event.raw_payload)

    material = discriminating_fields(booking)
    if not material:
        return None

    material["event_type"] = normalize_event_type(booking.event_type) or DEFAULT_EVENT_TYPE
    serialized = json.dumps(material, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return f"{HASH_PREFIX}{digest[:HASH_LENGTH]}"


def discriminating_fields(booking: BookingEvent) -> dict[str, str]:
    """Pick the fields that identify the real-world booking behind an event."""
    if booking.booking_id:
        return {"booking_id": booking.booking_id}

    fields: dict[str, str] = {}
    for name in COMPOSITE_FIELDS:
        value = getattr(booking, name)
        if value is not None:
            fields[name] = value
    return fields
