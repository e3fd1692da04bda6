"""
Message texts for the operators' chat.

Booking notifications are HTML (Telegram parse_mode=HTML), so every upstream
value is escaped. Failure reports are sent as plain text to keep the upstream
error body verbatim.
"""

from __future__ import annotations

import html
import json
import logging
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.core.events import BookingEvent, normalize_event_type
from src.core.transitions import Outcome, TransitionResult

logger = logging.getLogger(__name__)

CONTROL_LABELS: dict[Outcome, str] = {
    Outcome.PAID: "💰 Оплачено",
    Outcome.CANCELLED: "🚫 Скасувати",
    Outcome.APPROVED: "👍 Підтвердити",
    Outcome.REJECTED: "👎 Відхилити",
}

RESOLVED_LABELS: dict[Outcome, str] = {
    Outcome.PAID: "✅ Оплачено",
    Outcome.CANCELLED: "❌ Не вирішено",
    Outcome.APPROVED: "✅ Підтверджено",
    Outcome.REJECTED: "❌ Відхилено",
}

EVENT_TITLES: dict[str, str] = {
    "booking_created": "🆕 Нове бронювання",
    "booking_confirmed": "✅ Бронювання підтверджено",
    "booking_canceled": "🚫 Бронювання скасовано",
    "booking_cancelled": "🚫 Бронювання скасовано",
    "booking_rescheduled": "🔁 Бронювання перенесено",
}
DEFAULT_TITLE = "🆕 Нове бронювання"

RAW_PAYLOAD_LIMIT = 3000

# Preferred languages for translated service names.
SERVICE_NAME_LANGUAGES = ("uk", "ru", "en")


def format_booking_message(booking: BookingEvent, timezone: str = "Europe/Kiev") -> str:
    tz = _zone(timezone)
    title = EVENT_TITLES.get(normalize_event_type(booking.event_type), DEFAULT_TITLE)

    lines = [f"<b>{title}</b>", ""]
    if booking.service_name:
        lines.append(f"🛎 Послуга: <b>{_e(booking.service_name)}</b>")

    start = _parse_datetime(booking.start, tz)
    end = _parse_datetime(booking.end, tz)
    if start:
        when = start.strftime("%d.%m.%Y %H:%M")
        if end:
            when += "–" + (end.strftime("%H:%M") if end.date() == start.date() else end.strftime("%d.%m.%Y %H:%M"))
        lines.append(f"🗓 Час: {when}")
    elif booking.start:
        lines.append(f"🗓 Час: {_e(booking.start)}")

    if booking.staff_name:
        lines.append(f"👤 Майстер: {_e(booking.staff_name)}")
    if booking.location:
        lines.append(f"📍 Локація: {_e(booking.location)}")
    if booking.participants:
        lines.append(f"👥 Учасників: {_e(booking.participants)}")

    contact = ", ".join(_e(v) for v in (booking.contact_name, booking.contact_phone, booking.contact_email) if v)
    if contact:
        lines.append(f"📇 Клієнт: {contact}")

    currency = f" {_e(booking.currency)}" if booking.currency else ""
    if booking.price:
        lines.append(f"💵 Ціна: {_e(booking.price)}{currency}")
    if booking.remaining_due:
        lines.append(f"💳 До сплати: {_e(booking.remaining_due)}{currency}")

    if booking.booking_id:
        lines.append(f"🆔 <code>{_e(booking.booking_id)}</code>")

    return "\n".join(lines)


def format_failure_message(result: TransitionResult) -> str:
    """Plain-text report for the operator; the upstream body is kept verbatim."""
    record_id = result.request.record_id
    label = CONTROL_LABELS[result.outcome]

    if result.partial:
        done = ", ".join(s.action for s in result.steps if s.success)
        failed = result.failed_step.action if result.failed_step else "?"
        header = (
            f"⚠️ Часткова помилка для бронювання {record_id}.\n"
            f"Виконано: {done}. Не виконано: {failed}.\n"
            "Автоматичного відкату немає — потрібна ручна перевірка у Wix."
        )
    else:
        header = (
            f"❌ Не вдалося виконати «{label}» для бронювання {record_id}.\n"
            "Кнопки залишаються активними — можна спробувати ще раз."
        )

    return f"{header}\n\n{result.diagnostic}"


def format_services_message(services: list[dict]) -> str:
    """HTML list of bookable services with their ids."""
    if not services:
        return "Послуг не знайдено."

    lines = ["<b>📦 Доступні послуги:</b>"]
    for service in services:
        service_id = service.get("_id") or service.get("id") or service.get("appId") or "-"
        lines.append(f"• {_e(_service_name(service))}: <code>{_e(str(service_id))}</code>")
    return "\n".join(lines)


def format_services_failure(result: dict) -> str:
    """Plain-text report of a failed service query, upstream body verbatim."""
    if result.get("status") is not None:
        detail = f"HTTP {result['status']}\n{result.get('body') or ''}"
    else:
        detail = result.get("error") or "unknown error"
    return f"❌ Не вдалося отримати список послуг.\n\n{detail}"


def format_malformed_message(payload: object) -> str:
    """Plain-text diagnostic for an event that could not be recognized."""
    try:
        raw = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
    except (TypeError, ValueError):
        raw = repr(payload)
    if len(raw) > RAW_PAYLOAD_LIMIT:
        raw = raw[:RAW_PAYLOAD_LIMIT] + "…"
    return f"⚠️ Не вдалося розпізнати подію бронювання:\n\n{raw}"


def split_text(text: str, limit: int) -> list[str]:
    """Split text into chunks of at most `limit` characters, preferring line breaks."""
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    rest = text
    while len(rest) > limit:
        cut = rest.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(rest[:cut])
        rest = rest[cut:]
        if rest.startswith("\n"):
            rest = rest[1:]
    if rest:
        chunks.append(rest)
    return chunks


def _service_name(service: dict) -> str:
    name = service.get("name")
    if isinstance(name, dict):
        translated = name.get("translated") or {}
        for lang in SERVICE_NAME_LANGUAGES:
            if translated.get(lang):
                return str(translated[lang])
        name = name.get("original")
    return str(name) if name else "Без назви"


def _zone(name: str) -> ZoneInfo | None:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %s, times are shown as received", name)
        return None


def _parse_datetime(value: str | None, tz: ZoneInfo | None) -> datetime | None:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if tz is not None and dt.tzinfo is not None:
        dt = dt.astimezone(tz)
    return dt


def _e(value: str) -> str:
    return html.escape(value, quote=False)
