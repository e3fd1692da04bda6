"""
Notifier — sends booking notifications with outcome controls and applies
transition results to them.

Control payloads:
    <action>:<record_id>                 channels that report the clicked message
    <action>:<record_id>:<message_id>    channels with embeds_handle_in_payload
    noop:<record_id>                     static label after the booking is resolved
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from src.channels.base import Control, MessageHandle, NotificationChannel
from src.core.events import BookingEvent, normalize_event_type
from src.core.formatting import (
    CONTROL_LABELS,
    RESOLVED_LABELS,
    format_booking_message,
    format_failure_message,
    format_malformed_message,
    format_services_failure,
    format_services_message,
    split_text,
)
from src.core.transitions import Outcome, TransitionResult

logger = logging.getLogger(__name__)

NOOP_ACTION = "noop"
SEPARATOR = ":"

# Events after which the booking can no longer be paid or cancelled.
TERMINAL_EVENT_TYPES = frozenset({"booking_canceled", "booking_cancelled", "booking_declined"})


class ControlsState(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


@dataclass
class NotificationRecord:
    """One message in the operators' chat about one booking."""

    handle: MessageHandle
    record_id: str | None
    controls_state: ControlsState = ControlsState.ACTIVE
    resolved_outcome: Outcome | None = None

    @property
    def is_resolved(self) -> bool:
        return self.controls_state == ControlsState.RESOLVED


@dataclass
class ControlPayload:
    action: str
    record_id: str
    message_id: str | None = None

    def encode(self) -> str:
        if SEPARATOR in self.record_id:
            raise ValueError(f"record id must not contain '{SEPARATOR}': {self.record_id!r}")
        parts = [self.action, self.record_id]
        if self.message_id is not None:
            parts.append(self.message_id)
        return SEPARATOR.join(parts)

    @classmethod
    def decode(cls, raw: str) -> "ControlPayload | None":
        parts = (raw or "").split(SEPARATOR, 2)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            return None
        message_id = parts[2] if len(parts) > 2 and parts[2] else None
        if message_id is not None and SEPARATOR in message_id:
            return None
        return cls(action=parts[0], record_id=parts[1], message_id=message_id)


class Notifier:
    """Thin layer over a NotificationChannel for the booking control loop."""

    def __init__(
        self,
        channel: NotificationChannel,
        outcomes: list[Outcome] | None = None,
        timezone: str = "Europe/Kiev",
    ):
        self.channel = channel
        self.outcomes = outcomes or [Outcome.PAID, Outcome.CANCELLED]
        self.timezone = timezone

    def accepts_controls(self, booking: BookingEvent, record_id: str | None) -> bool:
        """Whether the notification for this event gets live outcome controls."""
        if not record_id:
            return False
        if normalize_event_type(booking.event_type) in TERMINAL_EVENT_TYPES:
            return False
        if SEPARATOR in record_id:
            logger.warning("Booking id %r cannot be carried in a control payload; sending without controls", record_id)
            return False
        return True

    def build_controls(self, record_id: str, message_id: str | None = None) -> list[Control]:
        return [
            Control(
                label=CONTROL_LABELS[outcome],
                payload=ControlPayload(outcome.value, record_id, message_id).encode(),
            )
            for outcome in self.outcomes
        ]

    async def send_booking(self, booking: BookingEvent, record_id: str | None) -> NotificationRecord | None:
        """
        Send the booking message; it carries live controls when accepts_controls() allows.

        The message handle is only known after send; channels that need it in
        the control payload get their controls patched in a second call.
        """
        text = format_booking_message(booking, self.timezone)
        if not self.accepts_controls(booking, record_id):
            record_id = None
        controls = self.build_controls(record_id) if record_id else None
        handle = await self.channel.send_message(text, controls=controls)
        if handle is None:
            logger.error("Booking notification for %s was not delivered", record_id or "(no id)")
            return None

        if record_id and self.channel.embeds_handle_in_payload:
            patched = await self.channel.edit_controls(handle, self.build_controls(record_id, handle.message_id))
            if not patched:
                logger.warning("Could not bind controls to message %s for booking %s", handle.key, record_id)

        return NotificationRecord(handle=handle, record_id=record_id)

    async def send_plain(self, text: str) -> None:
        """Send a bare text notification (no controls, no booking record)."""
        await self.channel.send_message(text, html=False)

    async def resolve(self, record: NotificationRecord, outcome: Outcome) -> bool:
        """Replace the live controls with one static terminal label."""
        record.controls_state = ControlsState.RESOLVED
        record.resolved_outcome = outcome

        label = Control(
            label=RESOLVED_LABELS[outcome],
            payload=ControlPayload(NOOP_ACTION, record.record_id).encode(),
        )
        edited = await self.channel.edit_controls(record.handle, [label])
        if not edited:
            logger.warning("Could not replace controls on message %s", record.handle.key)
        return edited

    async def report_failure(self, record: NotificationRecord, result: TransitionResult) -> None:
        """Follow-up plain-text message with the verbatim upstream diagnostic."""
        text = format_failure_message(result)
        for chunk in split_text(text, self.channel.max_message_length):
            await self.channel.send_message(chunk, html=False, reply_to=record.handle)

    async def report_services(self, result: dict, reply_to: MessageHandle | None = None) -> None:
        """Reply with the service list, or with the verbatim failure of the query."""
        if result.get("success"):
            text, html = format_services_message(result.get("services") or []), True
        else:
            text, html = format_services_failure(result), False
        for chunk in split_text(text, self.channel.max_message_length):
            await self.channel.send_message(chunk, html=html, reply_to=reply_to)

    async def report_malformed(self, payload: object) -> None:
        await self.send_plain(format_malformed_message(payload))
