"""Starts negotiation calls, live or simulated."""

from typing import Optional

from negotiator.calls.simulation import CallSimulator
from negotiator.config import NegotiationConfig, settings
from negotiator.errors import TelephonyError, VendorNotSelectedError
from negotiator.logging_context import bind_call, get_call_logger
from negotiator.schemas.session_schema import (
    Call,
    CallStatus,
    ConversationState,
    JourneyStatus,
    NegotiationStage,
)
from negotiator.store.session_store import SessionStore
from negotiator.tools.telephony import CallPlacer
from negotiator.utils import normalize_phone
from negotiator.voice.renderer import VoiceResponseRenderer

logger = get_call_logger(__name__)


class CallDialer:
    """Creates the call record and places it through the telephony provider."""

    def __init__(
        self,
        store: SessionStore,
        placer: CallPlacer,
        renderer: VoiceResponseRenderer,
        simulator: CallSimulator,
        config: NegotiationConfig = settings.negotiation,
    ) -> None:
        self._store = store
        self._placer = placer
        self._renderer = renderer
        self._simulator = simulator
        self._config = config

    async def start_call(
        self, session_id: str, budget: int, vendor_id: Optional[str] = None
    ) -> Call:
        """
        Start a negotiation with the selected vendor at ``budget``.

        Falls back to simulated progression when the provider cannot place
        the call.

        Raises:
            VendorNotSelectedError: If no vendor (or a different one) is selected.
        """
        bind_call(session_id)
        async with self._store.lock(session_id):
            session = self._store.require_session(session_id)
            vendor = session.selected_vendor
            if vendor is None or (vendor_id is not None and vendor.id != vendor_id):
                raise VendorNotSelectedError(
                    "Select this vendor before starting a call",
                    details={"sessionId": session_id, "vendorId": vendor_id},
                )
            call = Call(
                vendor_id=vendor.id,
                conversation_state=ConversationState(
                    stage=NegotiationStage.GREETING,
                    quantity=self._config.default_quantity,
                    initial_price=budget,
                ),
            )
            superseded = self._store.set_current_call(session_id, call)
            if superseded is not None:
                self._simulator.cancel(superseded.id)
            self._store.set_journey_status(session_id, JourneyStatus.CALLING_VENDOR)
            to_number = normalize_phone(vendor.phone)

        bind_call(session_id, call.id)
        logger.info("Calling %s at %s with budget %d", vendor.name, to_number, budget)
        try:
            provider_sid = await self._placer.place_call(
                to_number,
                self._renderer.prompt_url(session_id, call.id, NegotiationStage.GREETING),
                self._renderer.status_callback_url(call.id),
            )
        except TelephonyError as exc:
            logger.warning("Call placement failed (%s), simulating", exc.message)
            provider_sid = None
        except Exception:
            logger.exception("Unexpected call placement error, simulating")
            provider_sid = None

        async with self._store.lock(session_id):
            current = self._store.get_call(session_id, call.id)
            if current is None:
                logger.info("Call replaced while dialing")
                return call.model_copy(deep=True)
            changes = {}
            if current.status == CallStatus.INITIATING:
                changes["status"] = CallStatus.RINGING
            if provider_sid is None:
                changes["simulated"] = True
            else:
                changes["provider_call_sid"] = provider_sid
            current = self._store.update_call(session_id, call.id, **changes)
            if provider_sid is None:
                self._simulator.start(session_id, call.id)
            return current.model_copy(deep=True)
