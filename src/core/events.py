"""
Inbound booking events and the single schema-mapping function for them.

Booking payloads arrive in several shapes (Wix webhook envelope, automation
"send HTTP request" body, polled extended booking). All of them are mapped
here into one BookingEvent with named optional fields.

Field policy: every upstream field is optional. Each field has exactly one
alias chain (FIELD_ALIASES); the first non-empty value wins, otherwise the
field is None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel

# Keys under which the nested event-data object is looked up, in order.
ENVELOPE_KEYS = ("data", "payload")

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "booking_id": (
        "booking_id",
        "bookingId",
        "booking.id",
        "booking._id",
        "order_id",
        "orderId",
        "order_no",
        "orderNumber",
    ),
    "event_type": ("event_type", "eventType", "event", "type"),
    "service_name": (
        "service_name",
        "serviceName",
        "service.name",
        "bookedEntity.title",
        "title",
    ),
    "start": (
        "start_date",
        "startDate",
        "start_time",
        "startTime",
        "bookedEntity.slot.startDate",
        "slot.startDate",
    ),
    "end": (
        "end_date",
        "endDate",
        "end_time",
        "endTime",
        "bookedEntity.slot.endDate",
        "slot.endDate",
    ),
    "staff_id": (
        "staff_member_id",
        "staffMemberId",
        "resource_id",
        "resourceId",
        "staff.id",
        "bookedEntity.slot.resource.id",
        "slot.resource.id",
    ),
    "staff_name": (
        "staff_member_name",
        "staffMemberName",
        "staff.name",
        "bookedEntity.slot.resource.name",
        "slot.resource.name",
    ),
    "price": ("price.value", "price", "total", "totalPrice.value", "totalPrice"),
    "remaining_due": (
        "remaining_amount_due.value",
        "remaining_amount_due",
        "remainingAmountDue.value",
        "remainingAmountDue",
        "amount_due",
        "amountDue",
    ),
    "currency": ("price.currency", "currency", "totalPrice.currency"),
    "contact_name": (
        "contact_name",
        "contactName",
        "contactDetails.fullName",
        "contact.name",
        "customer_name",
    ),
    "contact_phone": ("contact_phone", "contactPhone", "contactDetails.phone", "contact.phone", "phone"),
    "contact_email": ("contact_email", "contactEmail", "contactDetails.email", "contact.email", "email"),
    "participants": ("number_of_participants", "numberOfParticipants", "totalParticipants", "participants"),
    "location": ("location.name", "location", "bookedEntity.location.name", "address"),
}


@dataclass
class InboundEvent:
    """One delivery from the scheduling platform (webhook body or polled booking)."""

    raw_payload: dict
    provider_event_id: str | None = None
    source: str = "webhook"
    metadata: dict = field(default_factory=dict)


class BookingEvent(BaseModel):
    """Normalized booking fields used for identity and message formatting."""

    booking_id: Optional[str] = None
    event_type: Optional[str] = None
    service_name: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    price: Optional[str] = None
    remaining_due: Optional[str] = None
    currency: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    participants: Optional[str] = None
    location: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(v for k, v in self.model_dump().items() if k != "event_type")


def extract_event_data(payload: Any) -> dict:
    """Return the nested event-data object, or the body itself if there is none."""
    if not isinstance(payload, dict):
        return {}
    for key in ENVELOPE_KEYS:
        nested = payload.get(key)
        if isinstance(nested, dict) and nested:
            return nested
    return payload


def parse_booking_event(payload: Any) -> BookingEvent:
    """Map any supported booking payload shape into a BookingEvent."""
    data = extract_event_data(payload)
    values: dict[str, str | None] = {}
    for name, aliases in FIELD_ALIASES.items():
        values[name] = _first(data, aliases)

    # Envelope-level event type (e.g. {"event": "booking_created", "data": {...}}).
    if values["event_type"] is None and isinstance(payload, dict) and data is not payload:
        values["event_type"] = _first(payload, FIELD_ALIASES["event_type"])

    return BookingEvent(**values)


def _first(data: dict, aliases: tuple[str, ...]) -> str | None:
    for path in aliases:
        value = _lookup(data, path)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _lookup(data: Any, path: str) -> Any:
    current = data
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def normalize_event_type(event_type: str | None) -> str:
    """booking.created / Booking-Created / booking_created -> booking_created; missing -> ""."""
    if not event_type:
        return ""
    return event_type.strip().lower().replace(".", "_").replace("-", "_")
