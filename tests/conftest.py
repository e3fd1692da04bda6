from __future__ import annotations

import pytest

from src.channels.base import CallbackQuery, ChatCommand, Control, MessageHandle, NotificationChannel
from src.channels.telegram import TelegramChannel
from src.core.dedup_store import InMemoryDedupStore
from src.core.notifier import Notifier
from src.core.relay import BookingRelay
from src.core.transitions import StatusTransitionGateway
from src.integrations.base import IntegrationAdapter, remote_result


class FakeChannel(NotificationChannel):
    """Records every outbound call; message ids are assigned on send."""

    channel_type = "fake"

    def __init__(self, config: dict | None = None, embeds_handle: bool = False):
        super().__init__(config or {"chat_id": "-100"})
        self.embeds_handle_in_payload = embeds_handle
        self.sent: list[dict] = []
        self.edits: list[tuple[MessageHandle, list[Control]]] = []
        self.answers: list[tuple[str, str]] = []
        self.fail_send = False
        self._next_id = 100

    async def send_message(self, text, controls=None, html=True, reply_to=None):
        if self.fail_send:
            return None
        self._next_id += 1
        handle = MessageHandle(chat_id="-100", message_id=str(self._next_id))
        self.sent.append({"text": text, "controls": controls, "html": html, "reply_to": reply_to, "handle": handle})
        return handle

    async def edit_controls(self, handle, controls):
        self.edits.append((handle, controls))
        return True

    async def answer_interaction(self, query_id, text=""):
        self.answers.append((query_id, text))
        return True

    @staticmethod
    def parse_callback(payload: dict) -> CallbackQuery | None:
        return TelegramChannel.parse_callback(payload)

    @staticmethod
    def parse_command(payload: dict) -> ChatCommand | None:
        return TelegramChannel.parse_command(payload)


class FakeBackend(IntegrationAdapter):
    """Booking backend returning scripted results per action (default: success)."""

    def __init__(self, results: dict[str, list[dict]] | None = None):
        super().__init__({})
        self.results = results or {}
        self.calls: list[tuple[str, dict]] = []

    async def execute(self, action: str, params: dict) -> dict:
        self.calls.append((action, params))
        queue = self.results.get(action)
        if queue:
            return queue.pop(0)
        return remote_result(True, status=200, body="{}")


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def relay(channel: FakeChannel, backend: FakeBackend) -> BookingRelay:
    return BookingRelay(
        notifier=Notifier(channel),
        gateway=StatusTransitionGateway(backend, timeout_seconds=1.0),
        dedup_store=InMemoryDedupStore(ttl_seconds=900),
    )


def click_update(payload: str, message_id: str, query_id: str = "q1", update_id: int | None = None) -> dict:
    """Telegram update for an inline button press on message `message_id` in chat -100."""
    update: dict = {
        "callback_query": {
            "id": query_id,
            "data": payload,
            "from": {"id": 7, "first_name": "Olena"},
            "message": {"message_id": int(message_id), "chat": {"id": -100}},
        }
    }
    if update_id is not None:
        update["update_id"] = update_id
    return update


@pytest.fixture
def make_click():
    return click_update
