"""
Booking Relay — the control loop between the booking platform and the
operators' chat.

    inbound event -> identity -> dedup window -> notify (controls ACTIVE)
    button click  -> callback guard -> transition gateway -> resolve / report
    /services     -> booking backend service list -> reply

Neither entry point raises on upstream failures: webhook deliveries are
always acknowledged, and every button click is answered exactly once.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from src.channels.base import CallbackQuery, ChatCommand, MessageHandle, NotificationChannel
from src.core.callback_guard import CallbackGuard
from src.core.dedup_store import DedupStore, build_dedup_store
from src.core.event_identity import derive_dedup_key
from src.core.events import InboundEvent, parse_booking_event
from src.core.notifier import NOOP_ACTION, ControlPayload, NotificationRecord, Notifier
from src.core.transitions import (
    Outcome,
    StatusTransitionGateway,
    TransitionRequest,
    TransitionResult,
    parse_outcome,
)

logger = logging.getLogger(__name__)

ANSWER_PROCESSING = "⏳ Обробка…"
ANSWER_ALREADY_HANDLED = "Вже оброблено"
ANSWER_IN_PROGRESS = "Вже обробляється"
ANSWER_UNKNOWN = "Невідома дія"

UPDATE_KEY_PREFIX = "update:"


class BookingRelay:
    """
    Wires the dedup store, notifier, callback guard and transition gateway.

    Usage:
        relay = BookingRelay(notifier, gateway, dedup_store)
        await relay.handle_event(InboundEvent(raw_payload=body, provider_event_id=hdr))
        await relay.handle_update(telegram_update)
    """

    def __init__(
        self,
        notifier: Notifier,
        gateway: StatusTransitionGateway,
        dedup_store: DedupStore,
        guard: CallbackGuard | None = None,
        notify_malformed: bool = True,
    ):
        self.notifier = notifier
        self.gateway = gateway
        self.dedup_store = dedup_store
        self.guard = guard or CallbackGuard()
        self.notify_malformed = notify_malformed
        # handle.key -> record; kept for the lifetime of the process.
        self.records: dict[str, NotificationRecord] = {}

    @property
    def channel(self) -> NotificationChannel:
        return self.notifier.channel

    # --- Inbound booking events ---

    async def handle_event(self, event: InboundEvent) -> dict:
        """
        Admit, deduplicate and notify one inbound booking event.

        Returns:
            Status dict: {"status": "notified" | "duplicate" | "malformed" | "undelivered", ...}
        """
        booking = parse_booking_event(event.raw_payload)
        if booking.is_empty():
            logger.warning("Unrecognized booking payload from %s", event.source)
            if self.notify_malformed:
                await self.notifier.report_malformed(event.raw_payload)
            return {"status": "malformed"}

        key = derive_dedup_key(event, booking)
        if key is None:
            logger.warning("No dedup key for event from %s; treating it as unique", event.source)
        elif not await self.dedup_store.admit(key):
            logger.info("Duplicate booking event suppressed: %s", key)
            return {"status": "duplicate", "dedup_key": key}

        record = await self.notifier.send_booking(booking, booking.booking_id)
        if record is None:
            # Let a redelivery (or the next poll) try again.
            if key is not None:
                await self.dedup_store.forget(key)
            return {"status": "undelivered", "dedup_key": key}

        if record.record_id:
            self.records[record.handle.key] = record

        logger.info("Booking %s notified as message %s", booking.booking_id, record.handle.key)
        return {"status": "notified", "dedup_key": key, "message": record.handle.key}

    # --- Channel updates / button clicks ---

    async def handle_update(self, update: dict) -> dict:
        """Entry point for raw channel updates (Telegram webhook body)."""
        update_id = update.get("update_id")
        if update_id is not None and not await self.dedup_store.admit(f"{UPDATE_KEY_PREFIX}{update_id}"):
            logger.info("Redelivered channel update %s skipped", update_id)
            return {"status": "duplicate"}

        query = self.channel.parse_callback(update)
        if query is not None:
            return await self.handle_callback(query)

        command = self.channel.parse_command(update)
        if command is not None:
            return await self.handle_command(command)
        return {"status": "skipped"}

    async def handle_command(self, command: ChatCommand) -> dict:
        """Answer a bot command typed in the operators' chat; other chats are ignored."""
        chat_id = str(self.channel.config.get("chat_id") or "")
        if chat_id and command.handle.chat_id != chat_id:
            logger.warning("Command %s from foreign chat %s ignored", command.name, command.handle.chat_id)
            return {"status": "ignored"}

        if command.name == "services":
            result = await self.gateway.backend.execute("query_services", {})
            await self.notifier.report_services(result, reply_to=command.handle)
            return {"status": "services", "success": bool(result.get("success"))}

        return {"status": "ignored"}

    async def handle_callback(self, query: CallbackQuery) -> dict:
        """
        Apply one button click.

        Every branch answers the interaction exactly once.
        """
        payload = ControlPayload.decode(query.payload)
        handle = self._resolve_handle(query, payload)

        if payload is None or handle is None:
            await self.channel.answer_interaction(query.query_id, ANSWER_UNKNOWN)
            return {"status": "ignored"}

        if payload.action == NOOP_ACTION:
            await self.channel.answer_interaction(query.query_id, ANSWER_ALREADY_HANDLED)
            return {"status": "resolved"}

        outcome = parse_outcome(payload.action)
        if outcome is None:
            await self.channel.answer_interaction(query.query_id, ANSWER_UNKNOWN)
            return {"status": "ignored"}

        record = self.records.get(handle.key)
        if record is not None and record.is_resolved:
            await self.channel.answer_interaction(query.query_id, ANSWER_ALREADY_HANDLED)
            return {"status": "resolved"}

        if not self.guard.try_claim(handle):
            await self.channel.answer_interaction(query.query_id, ANSWER_IN_PROGRESS)
            return {"status": "duplicate"}

        await self.channel.answer_interaction(query.query_id, ANSWER_PROCESSING)

        if record is None:
            # Message sent before a restart: rebuild the record from the click.
            record = NotificationRecord(handle=handle, record_id=payload.record_id)
            self.records[handle.key] = record

        request = TransitionRequest(
            record_id=payload.record_id,
            requested_outcome=outcome,
            actor_identity=query.actor_name or query.actor_id,
            source_message_handle=handle,
        )
        logger.info(
            "Operator %s requested %s for booking %s (message %s)",
            request.actor_identity,
            outcome.value,
            request.record_id,
            handle.key,
        )

        try:
            result = await self.gateway.apply(request)
        except Exception:
            self.guard.release(handle)
            raise

        if result.success:
            await self.notifier.resolve(record, outcome)
            return {"status": "applied", "outcome": outcome.value}

        self.guard.release(handle)
        await self._report_failure(record, result)
        return {"status": "failed", "outcome": outcome.value, "partial": result.partial}

    async def _report_failure(self, record: NotificationRecord, result: TransitionResult) -> None:
        try:
            await self.notifier.report_failure(record, result)
        except Exception:
            logger.exception("Could not report failed transition for booking %s", record.record_id)

    def _resolve_handle(self, query: CallbackQuery, payload: ControlPayload | None) -> MessageHandle | None:
        if query.handle is not None:
            return query.handle
        if payload is not None and payload.message_id:
            return MessageHandle(chat_id=str(self.channel.config.get("chat_id", "")), message_id=payload.message_id)
        return None


# --- Factory ---


def _parse_outcomes(values: list[str]) -> list[Outcome]:
    outcomes: list[Outcome] = []
    for value in values:
        outcome = parse_outcome(value.strip().lower())
        if outcome is None:
            raise ValueError(f"Unknown control outcome: '{value}'. Available: {', '.join(o.value for o in Outcome)}")
        outcomes.append(outcome)
    return outcomes


@lru_cache(maxsize=1)
def get_relay() -> BookingRelay:
    """Build the process-wide relay from settings (FastAPI dependency, Celery worker)."""
    from src.channels import get_channel
    from src.config import get_settings
    from src.core.secrets import resolve_secret
    from src.integrations.wix_bookings import WixBookingsAdapter

    settings = get_settings()

    webhook_url = ""
    if settings.public_url:
        from src.channels.telegram import WEBHOOK_PATH

        webhook_url = f"{settings.public_url.rstrip('/')}{WEBHOOK_PATH}"

    channel = get_channel(
        settings.notification_channel,
        {
            "token": resolve_secret("telegram_bot_token", settings.telegram_bot_token) or "",
            "chat_id": settings.telegram_chat_id,
            "thread_id": settings.telegram_thread_id,
            "webhook_url": webhook_url,
            "webhook_secret": settings.telegram_webhook_secret,
            "timeout": settings.remote_timeout_seconds,
        },
    )

    backend = WixBookingsAdapter(
        {
            "api_key": resolve_secret("wix_api_key", settings.wix_api_key) or "",
            "site_id": settings.wix_site_id,
            "client_id": settings.wix_client_id,
            "client_secret": settings.wix_client_secret,
            "refresh_token": resolve_secret("wix_refresh_token", settings.wix_refresh_token) or "",
            "timeout": settings.remote_timeout_seconds,
        }
    )

    return BookingRelay(
        notifier=Notifier(
            channel,
            outcomes=_parse_outcomes(settings.control_outcomes),
            timezone=settings.timezone,
        ),
        gateway=StatusTransitionGateway(
            backend,
            timeout_seconds=settings.remote_timeout_seconds,
            cancel_reason_code=settings.cancel_reason_code,
        ),
        dedup_store=build_dedup_store(
            settings.dedup_backend,
            ttl_seconds=settings.dedup_ttl_seconds,
            redis_url=settings.redis_url,
        ),
        notify_malformed=settings.notify_malformed_events,
    )
