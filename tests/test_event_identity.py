from __future__ import annotations

from src.core.event_identity import derive_dedup_key, provider_event_id_from_headers
from src.core.events import InboundEvent


def _composite(start: str = "2026-03-01T10:00:00Z", staff: str = "st-1", wrapper_id: str = "w-1") -> dict:
    return {
        "id": wrapper_id,
        "data": {
            "service_name": "A",
            "start_date": start,
            "end_date": "2026-03-01T11:00:00Z",
            "staff_member_id": staff,
            "price": {"value": "500", "currency": "UAH"},
            "remaining_amount_due": "500",
        },
    }


def test_header_id_is_authoritative():
    event = InboundEvent(raw_payload={"data": {"booking_id": "B1"}}, provider_event_id="evt-42")
    assert derive_dedup_key(event) == "hdr:evt-42"


def test_booking_id_key_is_stable_across_deliveries():
    first = derive_dedup_key(InboundEvent(raw_payload={"data": {"booking_id": "B1", "contact_name": "Ivan"}}))
    second = derive_dedup_key(InboundEvent(raw_payload={"data": {"booking_id": "B1", "contact_name": "Іван"}}))
    assert first == second
    assert first.startswith("hash:")
    assert len(first) == len("hash:") + 32


def test_composite_key_ignores_wrapper_id():
    first = derive_dedup_key(InboundEvent(raw_payload=_composite(wrapper_id="w-1")))
    retry = derive_dedup_key(InboundEvent(raw_payload=_composite(wrapper_id="w-2")))
    assert first == retry


def test_composite_key_differs_by_start_time():
    ten = derive_dedup_key(InboundEvent(raw_payload=_composite(start="2026-03-01T10:00:00Z")))
    eleven = derive_dedup_key(InboundEvent(raw_payload=_composite(start="2026-03-01T11:00:00Z")))
    assert ten != eleven


def test_composite_key_differs_by_resource():
    a = derive_dedup_key(InboundEvent(raw_payload=_composite(staff="st-1")))
    b = derive_dedup_key(InboundEvent(raw_payload=_composite(staff="st-2")))
    assert a != b


def test_booking_id_and_composite_keys_do_not_collide():
    by_id = derive_dedup_key(InboundEvent(raw_payload={"data": {"booking_id": "A"}}))
    by_fields = derive_dedup_key(InboundEvent(raw_payload={"data": {"service_name": "A"}}))
    assert by_id != by_fields


def test_no_discriminating_fields_returns_none():
    assert derive_dedup_key(InboundEvent(raw_payload={"data": {"note": "hello"}})) is None


def test_header_lookup_is_case_insensitive():
    headers = {"x-wix-event-id": " evt-1 ", "content-type": "application/json"}
    assert provider_event_id_from_headers(headers, "X-Wix-Event-Id") == "evt-1"


def test_header_lookup_missing_or_blank_returns_none():
    assert provider_event_id_from_headers({}, "X-Wix-Event-Id") is None
    assert provider_event_id_from_headers({"X-Wix-Event-Id": "  "}, "X-Wix-Event-Id") is None


def test_event_type_separates_events_for_same_booking():
    created = derive_dedup_key(
        InboundEvent(raw_payload={"event_type": "booking_created", "data": {"booking_id": "B1"}})
    )
    cancelled = derive_dedup_key(
        InboundEvent(raw_payload={"event_type": "booking_cancelled", "data": {"booking_id": "B1"}})
    )
    rescheduled = derive_dedup_key(
        InboundEvent(raw_payload={"event_type": "booking_rescheduled", "data": {"booking_id": "B1"}})
    )
    assert len({created, cancelled, rescheduled}) == 3


def test_event_type_separates_composite_events():
    created = _composite()
    cancelled = {**_composite(), "event": "booking_cancelled"}
    assert derive_dedup_key(InboundEvent(raw_payload=created)) != derive_dedup_key(InboundEvent(raw_payload=cancelled))


def test_event_type_spelling_and_default_are_normalized():
    missing = derive_dedup_key(InboundEvent(raw_payload={"data": {"booking_id": "B1"}}))
    dotted = derive_dedup_key(InboundEvent(raw_payload={"event": "Booking.Created", "data": {"booking_id": "B1"}}))
    plain = derive_dedup_key(InboundEvent(raw_payload={"event_type": "booking_created", "data": {"booking_id": "B1"}}))
    assert missing == dotted == plain
