"""
Maps provider status callbacks onto the call lifecycle.

Provider callbacks arrive late, duplicated and out of order. Statuses are
ranked, and an event is applied only if it moves the current call forward:

    initiating < ringing < in-progress < negotiating < terminal

Once a call is terminal nothing else touches it, so a repeated "completed"
callback cannot post a second message or request a second payment.
"""

from dataclasses import dataclass
from typing import Optional

from negotiator.config import ReconcilerConfig, settings
from negotiator.errors import NegotiatorError
from negotiator.logging_context import bind_call, get_call_logger
from negotiator.payments.coordinator import PaymentCoordinator
from negotiator.prompts.chat_messages import (
    build_ambiguous_outcome_message,
    build_call_failed_message,
    build_hung_up_message,
    build_negotiated_price_message,
    build_no_answer_message,
)
from negotiator.schemas.session_schema import (
    TERMINAL_CALL_STATUSES,
    Call,
    CallStatus,
    JourneyStatus,
    MessageRole,
    NegotiationStage,
)
from negotiator.store.session_store import SessionStore
from negotiator.utils import utc_now

logger = get_call_logger(__name__)

TERMINAL_RANK = 4

CALL_STATUS_RANK: dict[CallStatus, int] = {
    CallStatus.INITIATING: 0,
    CallStatus.RINGING: 1,
    CallStatus.IN_PROGRESS: 2,
    CallStatus.NEGOTIATING: 3,
    **{status: TERMINAL_RANK for status in TERMINAL_CALL_STATUSES},
}

# Provider status -> call status, for everything except "completed".
PROVIDER_STATUS_MAP: dict[str, CallStatus] = {
    "initiated": CallStatus.INITIATING,
    "queued": CallStatus.INITIATING,
    "ringing": CallStatus.RINGING,
    "in-progress": CallStatus.IN_PROGRESS,
    "answered": CallStatus.IN_PROGRESS,
    "no-answer": CallStatus.NO_ANSWER,
    "busy": CallStatus.NO_ANSWER,
    "failed": CallStatus.FAILED,
    "canceled": CallStatus.HUNG_UP,
}

MACHINE_ANSWERS = ("machine", "fax")


@dataclass(frozen=True)
class StatusEvent:
    """One status callback from the telephony provider."""
    status: str
    duration_seconds: Optional[int] = None
    answered_by: Optional[str] = None


@dataclass(frozen=True)
class ReconcileResult:
    applied: bool
    status: Optional[CallStatus] = None
    reason: str = ""


def can_advance(current: CallStatus, target: CallStatus) -> bool:
    """True if ``target`` is strictly later in the lifecycle than ``current``."""
    return CALL_STATUS_RANK[target] > CALL_STATUS_RANK[current]


class CallStatusReconciler:
    """Applies status events to the session's current call."""

    def __init__(
        self,
        store: SessionStore,
        payments: PaymentCoordinator,
        config: ReconcilerConfig = settings.reconciler,
    ) -> None:
        self._store = store
        self._payments = payments
        self._config = config

    async def apply(self, session_id: str, call_id: str, event: StatusEvent) -> ReconcileResult:
        bind_call(session_id, call_id)
        async with self._store.lock(session_id):
            if self._store.get_session(session_id) is None:
                return self._ignored("unknown session")
            call = self._store.get_call(session_id, call_id)
            if call is None:
                return self._ignored("call not current")
            if call.is_terminal:
                return self._ignored(f"call already {call.status.value}")

            raw = (event.status or "").strip().lower()
            if raw == "completed":
                target = self._classify_completed(call, event)
            else:
                target = PROVIDER_STATUS_MAP.get(raw)
            if target is None:
                return self._ignored(f"unknown status '{raw}'")
            if not can_advance(call.status, target):
                return self._ignored(f"'{raw}' does not advance {call.status.value}")

            if target in TERMINAL_CALL_STATUSES:
                self._finish(session_id, call, target, event)
            else:
                self._store.update_call(session_id, call_id, status=target)
                logger.info("Call status -> %s", target.value)
            return ReconcileResult(applied=True, status=target)

    def _classify_completed(self, call: Call, event: StatusEvent) -> CallStatus:
        duration = event.duration_seconds or 0
        price = call.negotiated_price
        answered_by = (event.answered_by or "").lower()

        if price is None and answered_by.startswith(MACHINE_ANSWERS):
            return CallStatus.NO_ANSWER
        if duration < self._config.min_call_seconds:
            return CallStatus.HUNG_UP
        if price is None and duration < self._config.min_unpriced_call_seconds:
            return CallStatus.HUNG_UP
        return CallStatus.COMPLETED

    def _finish(
        self, session_id: str, call: Call, status: CallStatus, event: StatusEvent
    ) -> None:
        call = self._store.update_call(
            session_id,
            call.id,
            status=status,
            duration=event.duration_seconds or 0,
            completed_at=utc_now(),
        )
        session = self._store.require_session(session_id)
        vendor_name = session.selected_vendor.name if session.selected_vendor else None
        logger.info(
            "Call finished: %s (duration %ss, price %s)",
            status.value, call.duration, call.negotiated_price,
        )

        if status == CallStatus.COMPLETED and call.negotiated_price is not None:
            self._store.set_journey_status(session_id, JourneyStatus.PROCESSING_PAYMENT)
            self._store.add_message(
                session_id,
                MessageRole.ASSISTANT,
                build_negotiated_price_message(call.negotiated_price),
            )
            try:
                self._payments.request_approval(session_id, call)
            except NegotiatorError:
                logger.exception("Could not create transaction for call %s", call.id)
            return

        self._store.set_journey_status(session_id, JourneyStatus.SELECTING_VENDOR)
        if status == CallStatus.NO_ANSWER:
            message = build_no_answer_message(vendor_name)
        elif status == CallStatus.FAILED:
            message = build_call_failed_message(vendor_name)
        elif status == CallStatus.HUNG_UP:
            message = build_hung_up_message(vendor_name)
        elif call.conversation_state.stage == NegotiationStage.NO_SAREE:
            # Decline was already announced during the call.
            return
        else:
            message = build_ambiguous_outcome_message(vendor_name)
        self._store.add_message(session_id, MessageRole.ASSISTANT, message)

    def _ignored(self, reason: str) -> ReconcileResult:
        logger.debug("Status event ignored: %s", reason)
        return ReconcileResult(applied=False, reason=reason)
