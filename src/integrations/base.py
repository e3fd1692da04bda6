"""
Base Integration Adapter — abstract interface for the remote booking backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IntegrationAdapter(ABC):
    """Base class for integration adapters."""

    integration_type: str = ""

    def __init__(self, config: dict):
        self.config = config

    @abstractmethod
    async def execute(self, action: str, params: dict) -> dict:
        """
        Execute an integration action.

        Args:
            action: Action name (e.g., "confirm_booking", "mark_paid")
            params: Action-specific parameters

        Returns:
            Result dict with at least {"success": bool}. Remote calls also
            report {"status": int | None, "body": str, "error": str | None},
            where body is the upstream response text, untouched.
        """


def remote_result(success: bool, status: int | None = None, body: str = "", error: str | None = None, **extra) -> dict:
    """Build the result dict every remote action returns."""
    return {"success": success, "status": status, "body": body, "error": error, **extra}
