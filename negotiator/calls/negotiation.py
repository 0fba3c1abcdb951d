"""
Applies vendor turns to the stored call and picks the next voice document.

The state machine decides the next stage; the driver owns everything around
it: loading the call under the session lock, rejecting stale deliveries,
persisting the state, mirroring the agreed price, appending the transcript
and posting chat messages when a negotiation ends early.
"""

from typing import Optional

from negotiator.conversation.state_machine import NegotiationStateMachine
from negotiator.logging_context import bind_call, get_call_logger
from negotiator.prompts.chat_messages import (
    build_negotiation_timeout_message,
    build_vendor_declined_message,
)
from negotiator.schemas.session_schema import (
    Call,
    CallStatus,
    JourneyStatus,
    MessageRole,
    NegotiationStage,
)
from negotiator.store.session_store import SessionStore
from negotiator.utils import utc_now
from negotiator.voice.renderer import VoiceDialogDocument, VoiceResponseRenderer

logger = get_call_logger(__name__)

PRE_NEGOTIATION_STATUSES = frozenset({
    CallStatus.INITIATING,
    CallStatus.RINGING,
    CallStatus.IN_PROGRESS,
})


class NegotiationDriver:
    """Runs one negotiation call turn by turn."""

    def __init__(
        self,
        store: SessionStore,
        renderer: VoiceResponseRenderer,
        machine: Optional[NegotiationStateMachine] = None,
    ) -> None:
        self._store = store
        self._renderer = renderer
        self._machine = machine or NegotiationStateMachine()

    async def current_prompt(
        self,
        session_id: str,
        call_id: str,
        stage: NegotiationStage,
        attempt: int = 0,
    ) -> VoiceDialogDocument:
        """
        Document for a prompt fetch or retry redirect.

        A request for a stage the call has already left renders the stored
        stage instead.
        """
        bind_call(session_id, call_id)
        async with self._store.lock(session_id):
            call = self._store.require_call(session_id, call_id)
            if call.is_terminal:
                return self._hangup(session_id, call)

            state = call.conversation_state
            if stage != state.stage:
                logger.info(
                    "Prompt requested for '%s' but call is at '%s'",
                    stage.value, state.stage.value,
                )
                return self._renderer.render(
                    session_id, call_id, state.stage, state, state.attempts
                )
            return self._renderer.render(
                session_id, call_id, stage, state, max(attempt, state.attempts)
            )

    async def submit_input(
        self,
        session_id: str,
        call_id: str,
        stage: NegotiationStage,
        speech: str = "",
        digits: str = "",
    ) -> VoiceDialogDocument:
        """
        Apply one gathered vendor turn and return the next document.

        Raises:
            SessionNotFoundError, CallNotFoundError: If the call is not the
                session's current call.
        """
        bind_call(session_id, call_id)
        async with self._store.lock(session_id):
            call = self._store.require_call(session_id, call_id)
            if call.is_terminal:
                logger.info("Input for finished call (%s), hanging up", call.status.value)
                return self._hangup(session_id, call)

            stored_stage = call.conversation_state.stage
            if stage != stored_stage:
                logger.info(
                    "Stale gather for '%s', call is at '%s'", stage.value, stored_stage.value
                )
                state = call.conversation_state
                return self._renderer.render(
                    session_id, call_id, stored_stage, state, state.attempts
                )

            result = self._machine.advance(call.conversation_state, text=speech, digits=digits)
            state = result.state

            changes = {"conversation_state": state}
            if call.status in PRE_NEGOTIATION_STATUSES:
                changes["status"] = CallStatus.NEGOTIATING
            if state.final_price is not None:
                changes["negotiated_price"] = state.final_price
            utterance = (speech or "").strip() or (digits or "").strip()
            if utterance:
                line = f"[{stored_stage.value}] {utterance}"
                changes["transcript"] = f"{call.transcript}\n{line}" if call.transcript else line
            call = self._store.update_call(session_id, call_id, **changes)

            if result.stage_changed:
                logger.info(
                    "Negotiation %s -> %s", result.previous_stage.value, state.stage.value
                )
                self._on_stage_entered(session_id, call)

            return self._renderer.render(session_id, call_id, state.stage, state, state.attempts)

    def _on_stage_entered(self, session_id: str, call: Call) -> None:
        session = self._store.require_session(session_id)
        vendor_name = session.selected_vendor.name if session.selected_vendor else None
        stage = call.conversation_state.stage

        if stage == NegotiationStage.TIMEOUT:
            self._store.update_call(
                session_id, call.id, status=CallStatus.TIMEOUT, completed_at=utc_now()
            )
            self._store.set_journey_status(session_id, JourneyStatus.SELECTING_VENDOR)
            self._store.add_message(
                session_id, MessageRole.ASSISTANT, build_negotiation_timeout_message(vendor_name)
            )
        elif stage == NegotiationStage.NO_SAREE:
            self._store.add_message(
                session_id, MessageRole.ASSISTANT, build_vendor_declined_message(vendor_name)
            )

    def _hangup(self, session_id: str, call: Call) -> VoiceDialogDocument:
        return self._renderer.render(
            session_id, call.id, NegotiationStage.ENDED, call.conversation_state
        )
