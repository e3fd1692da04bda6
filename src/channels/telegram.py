"""
Telegram Bot Channel — webhook-based notification channel with inline buttons.

Setup:
1. Create a bot via @BotFather -> get token
2. Add the bot to the operators' chat and put the chat id in TELEGRAM_CHAT_ID
3. On app start, setup() registers {PUBLIC_URL}/api/v1/webhooks/telegram as the webhook
"""

from __future__ import annotations

import logging

import httpx

from src.channels.base import (
    CallbackQuery,
    ChatCommand,
    Control,
    MessageHandle,
    NotificationChannel,
    register_channel,
)

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org/bot"
WEBHOOK_PATH = "/api/v1/webhooks/telegram"

# Message text -> command name. The menu button text works like the slash command.
COMMANDS: dict[str, str] = {
    "/services": "services",
    "📦 Послуги": "services",
}


@register_channel("telegram")
class TelegramChannel(NotificationChannel):
    """
    Telegram Bot API channel.

    Config keys:
        token: str - bot token
        chat_id: str - operators' chat
        thread_id: int - forum topic inside the chat (optional)
        webhook_url: str - public URL for updates (optional)
        webhook_secret: str - value Telegram echoes in X-Telegram-Bot-Api-Secret-Token
        timeout: float - HTTP timeout in seconds (default 10)
    """

    def __init__(self, config: dict):
        super().__init__(config)
        self.token: str = config.get("token", "")
        self.chat_id: str = str(config.get("chat_id", ""))
        self.thread_id: int | None = config.get("thread_id")
        self.timeout: float = float(config.get("timeout", 10.0))
        self.api_base: str = f"{TELEGRAM_API_BASE}{self.token}"

    async def _call(self, method: str, payload: dict) -> dict | None:
        """POST a Bot API method. Returns the `result` object, or None on any failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"{self.api_base}/{method}", json=payload)
            data = resp.json() if resp.content else {}
            if resp.is_success and data.get("ok"):
                result = data.get("result")
                return result if isinstance(result, dict) else {"value": result}
            logger.warning(
                "Telegram %s error: %s %s",
                method,
                resp.status_code,
                data.get("description") or resp.text,
            )
            return None
        except Exception as e:
            logger.error("Telegram %s failed: %s", method, e)
            return None

    async def send_message(
        self,
        text: str,
        controls: list[Control] | None = None,
        html: bool = True,
        reply_to: MessageHandle | None = None,
    ) -> MessageHandle | None:
        payload: dict = {
            "chat_id": self.chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if html:
            payload["parse_mode"] = "HTML"
        if controls:
            payload["reply_markup"] = build_inline_keyboard(controls)
        if self.thread_id is not None:
            payload["message_thread_id"] = self.thread_id
        if reply_to is not None:
            payload["reply_to_message_id"] = int(reply_to.message_id)

        result = await self._call("sendMessage", payload)
        if result is None or result.get("message_id") is None:
            return None

        chat = result.get("chat") or {}
        handle = MessageHandle(
            chat_id=str(chat.get("id", self.chat_id)),
            message_id=str(result["message_id"]),
        )
        logger.info("Sent Telegram message %s", handle.key)
        return handle

    async def edit_controls(self, handle: MessageHandle, controls: list[Control]) -> bool:
        result = await self._call(
            "editMessageReplyMarkup",
            {
                "chat_id": handle.chat_id,
                "message_id": int(handle.message_id),
                "reply_markup": build_inline_keyboard(controls),
            },
        )
        return result is not None

    async def answer_interaction(self, query_id: str, text: str = "") -> bool:
        payload: dict = {"callback_query_id": query_id}
        if text:
            payload["text"] = text
        result = await self._call("answerCallbackQuery", payload)
        return result is not None

    @staticmethod
    def parse_callback(payload: dict) -> CallbackQuery | None:
        """
        Parse a Telegram webhook update into CallbackQuery.

        Returns:
            CallbackQuery or None if the update is not an inline button press.
        """
        query = payload.get("callback_query") or {}
        if not query.get("id"):
            return None

        message = query.get("message") or {}
        chat = message.get("chat") or {}
        handle = None
        if message.get("message_id") is not None and chat.get("id") is not None:
            handle = MessageHandle(chat_id=str(chat["id"]), message_id=str(message["message_id"]))

        from_user = query.get("from") or {}
        actor_id = from_user.get("id")

        return CallbackQuery(
            query_id=str(query["id"]),
            payload=str(query.get("data") or ""),
            handle=handle,
            actor_id=str(actor_id) if actor_id is not None else None,
            actor_name=_build_name(from_user),
            metadata={
                "telegram_update_id": payload.get("update_id"),
                "telegram_username": from_user.get("username"),
            },
        )

    @staticmethod
    def parse_command(payload: dict) -> ChatCommand | None:
        """
        Parse a text message into a ChatCommand.

        Returns:
            ChatCommand or None if the message is not a known command.
        """
        message = payload.get("message") or {}
        text = (message.get("text") or "").strip()
        chat = message.get("chat") or {}
        if not text or message.get("message_id") is None or chat.get("id") is None:
            return None

        # "/services@MyBot" in group chats.
        word = text.split()[0].split("@")[0]
        name = COMMANDS.get(text) or COMMANDS.get(word)
        if name is None:
            return None

        return ChatCommand(
            name=name,
            handle=MessageHandle(chat_id=str(chat["id"]), message_id=str(message["message_id"])),
            actor_name=_build_name(message.get("from") or {}),
        )

    async def setup(self) -> None:
        """
        Register webhook with Telegram.

        Requires webhook_url in config; button presses and text messages are subscribed.
        """
        webhook_url = self.config.get("webhook_url")
        if not webhook_url:
            logger.warning("Telegram webhook_url not configured — skipping webhook setup")
            return

        payload: dict = {"url": webhook_url, "allowed_updates": ["callback_query", "message"]}
        secret = self.config.get("webhook_secret")
        if secret:
            payload["secret_token"] = secret

        if await self._call("setWebhook", payload) is not None:
            logger.info("Telegram webhook set: %s", webhook_url)
        else:
            logger.error("Failed to set Telegram webhook: %s", webhook_url)


def build_inline_keyboard(controls: list[Control]) -> dict:
    """One row with all controls; an empty list clears the keyboard."""
    if not controls:
        return {"inline_keyboard": []}
    return {"inline_keyboard": [[{"text": c.label, "callback_data": c.payload} for c in controls]]}


def _build_name(from_user: dict) -> str | None:
    """Build display name from Telegram user object."""
    parts = [from_user.get("first_name", ""), from_user.get("last_name", "")]
    name = " ".join(p for p in parts if p).strip()
    return name or from_user.get("username") or None
