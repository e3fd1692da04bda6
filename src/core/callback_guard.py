"""
Callback Guard — at most one in-flight or applied transition per message.

A claim is keyed by the message handle the buttons live on, not by the
callback id: Telegram issues a new callback id for every tap and may redeliver
updates, but each booking has exactly one message with one live control set.

Claims are kept for the lifetime of the process once a transition succeeds.
On failure the relay releases the claim so the operator can press again.
"""

from __future__ import annotations

import logging

from src.channels.base import MessageHandle

logger = logging.getLogger(__name__)


class CallbackGuard:
    """
    Process-local claim set.

    Usage:
        guard = CallbackGuard()
        if guard.try_claim(handle):
            ...  # apply transition; guard.release(handle) on failure
    """

    def __init__(self) -> None:
        self._claimed: set[str] = set()

    def try_claim(self, handle: MessageHandle) -> bool:
        """True the first time for a handle; False while the claim is held."""
        key = handle.key
        if key in self._claimed:
            logger.info("Duplicate callback suppressed for message %s", key)
            return False
        self._claimed.add(key)
        return True

    def release(self, handle: MessageHandle) -> None:
        self._claimed.discard(handle.key)

    def is_claimed(self, handle: MessageHandle) -> bool:
        return handle.key in self._claimed
