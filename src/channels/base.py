"""
Base Notification Channel — abstract interface for chat providers.

The relay only needs three capabilities from a channel: send a formatted
message with labeled controls, edit a message's controls, and answer an
interactive query. Any chat provider that offers those can be plugged in.

To add a new channel:
1. Create a file in src/channels/ (e.g., slack.py)
2. Subclass NotificationChannel
3. Implement send_message(), edit_controls(), answer_interaction(), parse_callback()
4. Register with @register_channel("<type>")
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageHandle:
    """Channel-assigned identity of a sent message."""

    chat_id: str
    message_id: str

    @property
    def key(self) -> str:
        return f"{self.chat_id}:{self.message_id}"


@dataclass
class Control:
    """One interactive button; `payload` is delivered back on click."""

    label: str
    payload: str


@dataclass
class CallbackQuery:
    """Normalized interactive-control click (common format across all channels)."""

    query_id: str
    payload: str
    handle: MessageHandle | None
    actor_id: str | None = None
    actor_name: str | None = None
    metadata: dict = field(default_factory=dict)


@dataclass
class ChatCommand:
    """Text command sent to the bot (e.g. /services)."""

    name: str
    handle: MessageHandle
    actor_name: str | None = None


class NotificationChannel(ABC):
    """
    Base class for all notification channels.

    Each channel handles communication with one external messaging platform.
    """

    # Channel type identifier (e.g., "telegram").
    channel_type: str = ""

    # Channels that do not report the clicked message in callbacks need the
    # handle embedded in each control payload, patched in after send.
    embeds_handle_in_payload: bool = False

    # Maximum text length of one message.
    max_message_length: int = 4096

    def __init__(self, config: dict):
        """
        Args:
            config: Channel-specific configuration (token, chat id, ...).
        """
        self.config = config

    @abstractmethod
    async def send_message(
        self,
        text: str,
        controls: list[Control] | None = None,
        html: bool = True,
        reply_to: MessageHandle | None = None,
    ) -> MessageHandle | None:
        """
        Send a message to the configured chat.

        Returns:
            Handle of the sent message, or None if the channel rejected it.
        """

    @abstractmethod
    async def edit_controls(self, handle: MessageHandle, controls: list[Control]) -> bool:
        """Replace the message's controls; an empty list removes them."""

    @abstractmethod
    async def answer_interaction(self, query_id: str, text: str = "") -> bool:
        """Acknowledge an interactive query so the client stops showing progress."""

    @staticmethod
    @abstractmethod
    def parse_callback(payload: dict) -> CallbackQuery | None:
        """Parse a raw update into a CallbackQuery, or None if it is not a click."""

    @staticmethod
    def parse_command(payload: dict) -> ChatCommand | None:
        """Parse a raw update into a ChatCommand. Channels without commands return None."""
        return None

    async def setup(self) -> None:
        """Optional setup hook (e.g., register webhooks). Called on app start."""

    async def teardown(self) -> None:
        """Optional cleanup hook. Called on app stop."""


# --- Channel Registry ---

# Map of channel_type -> channel class.
# Populated by register_channel() when channel modules are imported.
CHANNEL_REGISTRY: dict[str, type[NotificationChannel]] = {}


def register_channel(channel_type: str):
    """Decorator to register a notification channel class."""

    def decorator(cls: type[NotificationChannel]):
        cls.channel_type = channel_type
        CHANNEL_REGISTRY[channel_type] = cls
        return cls

    return decorator


def get_channel(channel_type: str, config: dict) -> NotificationChannel:
    """
    Factory: create a notification channel by type.

    Raises:
        ValueError: If channel_type is not registered.
    """
    cls = CHANNEL_REGISTRY.get(channel_type)
    if cls is None:
        available = ", ".join(CHANNEL_REGISTRY.keys()) or "(none)"
        raise ValueError(f"Unknown channel type: '{channel_type}'. Available: {available}")
    return cls(config)
