"""
Status Transition Gateway — applies an operator's requested outcome to the
remote booking record.

Outcome -> ordered remote steps:
    PAID       confirm_booking, then mark_paid
    CANCELLED  cancel_booking (with reason code)
    APPROVED   confirm_booking
    REJECTED   decline_booking

Steps run strictly in order and stop at the first failure. There is no
compensating action upstream: if PAID confirms but mark_paid fails, the result
is FAILED with partial=True and a human reconciles the booking.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from src.channels.base import MessageHandle
from src.integrations.base import IntegrationAdapter

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    PAID = "paid"
    CANCELLED = "cancelled"
    APPROVED = "approved"
    REJECTED = "rejected"


OUTCOME_STEPS: dict[Outcome, tuple[str, ...]] = {
    Outcome.PAID: ("confirm_booking", "mark_paid"),
    Outcome.CANCELLED: ("cancel_booking",),
    Outcome.APPROVED: ("confirm_booking",),
    Outcome.REJECTED: ("decline_booking",),
}


@dataclass
class TransitionRequest:
    """Operator-initiated attempt to change a booking's status."""

    record_id: str
    requested_outcome: Outcome
    actor_identity: str | None = None
    source_message_handle: MessageHandle | None = None


@dataclass
class StepResult:
    action: str
    success: bool
    status: int | None = None
    body: str = ""
    error: str | None = None

    def describe(self) -> str:
        """Status and raw upstream body, verbatim."""
        if self.status is not None:
            return f"{self.action}: HTTP {self.status}\n{self.body}"
        return f"{self.action}: {self.error or 'unknown error'}"


@dataclass
class TransitionResult:
    request: TransitionRequest
    success: bool
    steps: list[StepResult] = field(default_factory=list)

    @property
    def outcome(self) -> Outcome:
        return self.request.requested_outcome

    @property
    def partial(self) -> bool:
        """At least one step applied upstream, but a later one failed."""
        return not self.success and any(s.success for s in self.steps)

    @property
    def failed_step(self) -> StepResult | None:
        return next((s for s in self.steps if not s.success), None)

    @property
    def diagnostic(self) -> str:
        step = self.failed_step
        return step.describe() if step else ""


class StatusTransitionGateway:
    """
    Translates TransitionRequest into remote calls on the booking backend.

    The caller guarantees one call per message (see CallbackGuard); the
    gateway itself holds no state.
    """

    def __init__(
        self,
        backend: IntegrationAdapter,
        timeout_seconds: float = 10.0,
        cancel_reason_code: str = "OPERATOR_CANCELLED",
    ):
        self.backend = backend
        self.timeout_seconds = timeout_seconds
        self.cancel_reason_code = cancel_reason_code

    async def apply(self, request: TransitionRequest) -> TransitionResult:
        result = TransitionResult(request=request, success=False)

        for action in OUTCOME_STEPS[request.requested_outcome]:
            step = await self._run_step(action, self._params(action, request))
            result.steps.append(step)
            if not step.success:
                logger.warning(
                    "Transition %s for booking %s failed at %s (partial=%s): %s",
                    request.requested_outcome.value,
                    request.record_id,
                    action,
                    result.partial,
                    step.describe(),
                )
                return result

        result.success = True
        logger.info(
            "Transition %s applied to booking %s by %s",
            request.requested_outcome.value,
            request.record_id,
            request.actor_identity,
        )
        return result

    def _params(self, action: str, request: TransitionRequest) -> dict:
        params: dict = {"booking_id": request.record_id}
        if action == "cancel_booking":
            params["reason"] = self.cancel_reason_code
        return params

    async def _run_step(self, action: str, params: dict) -> StepResult:
        """Run one remote action; timeouts and exceptions become a failed step."""
        try:
            raw = await asyncio.wait_for(
                self.backend.execute(action, params),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            return StepResult(action=action, success=False, error=f"timeout after {self.timeout_seconds:g}s")
        except Exception as e:
            logger.exception("Remote step %s raised", action)
            return StepResult(action=action, success=False, error=f"{type(e).__name__}: {e}")

        return StepResult(
            action=action,
            success=bool(raw.get("success")),
            status=raw.get("status"),
            body=raw.get("body") or "",
            error=raw.get("error"),
        )


def parse_outcome(value: str) -> Outcome | None:
    try:
        return Outcome(value)
    except ValueError:
        return None
