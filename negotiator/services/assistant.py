"""Chat turns and vendor selection for the shopping journey."""

from dataclasses import dataclass
from typing import Optional

from negotiator.calls.simulation import CallSimulator
from negotiator.errors import VendorNotFoundError
from negotiator.logging_context import bind_call, get_call_logger
from negotiator.prompts.chat_messages import (
    CHAT_UNAVAILABLE_MESSAGE,
    build_vendor_selected_message,
)
from negotiator.schemas.session_schema import JourneyStatus, Message, MessageRole, Vendor
from negotiator.store.session_store import SessionStore
from negotiator.tools.chat import ChatResponder, KeywordChatResponder
from negotiator.tools.vendors import VendorDirectory

logger = get_call_logger(__name__)


@dataclass(frozen=True)
class ChatTurn:
    session_id: str
    message: Message
    vendors: Optional[list[Vendor]]
    journey_status: JourneyStatus


class ShoppingAssistant:
    """Handles the user's side of the journey up to the vendor call."""

    def __init__(
        self,
        store: SessionStore,
        directory: VendorDirectory,
        simulator: CallSimulator,
        responder: Optional[ChatResponder] = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._simulator = simulator
        self._responder = responder or KeywordChatResponder()

    async def handle_message(self, text: str, session_id: Optional[str] = None) -> ChatTurn:
        session = self._store.get_or_create(session_id)
        bind_call(session.id)
        async with self._store.lock(session.id):
            self._store.add_message(session.id, MessageRole.USER, text)
            try:
                reply = await self._responder.generate_response_with_intent(
                    text, list(session.messages), session.journey_status, list(session.vendors)
                )
            except Exception:
                logger.exception("Chat responder failed")
                message = self._store.add_message(
                    session.id, MessageRole.ASSISTANT, CHAT_UNAVAILABLE_MESSAGE
                )
                return ChatTurn(
                    session_id=session.id,
                    message=message,
                    vendors=None,
                    journey_status=session.journey_status,
                )

            vendors: Optional[list[Vendor]] = None
            if reply.intent.want_to_search:
                self._store.set_journey_status(session.id, JourneyStatus.SEARCHING_VENDORS)
                vendors = await self._directory.search(reply.intent.location)
                self._store.set_vendors(session.id, vendors)
                self._store.set_journey_status(session.id, JourneyStatus.SELECTING_VENDOR)
                logger.info("Found %d vendors", len(vendors))

            message = self._store.add_message(session.id, MessageRole.ASSISTANT, reply.text)
            return ChatTurn(
                session_id=session.id,
                message=message,
                vendors=vendors,
                journey_status=session.journey_status,
            )

    async def select_vendor(self, session_id: str, vendor_id: str) -> Vendor:
        """
        Select one of the session's discovered vendors.

        Raises:
            SessionNotFoundError: If the session does not exist.
            VendorNotFoundError: If the vendor is not in the session's list.
        """
        bind_call(session_id)
        async with self._store.lock(session_id):
            session = self._store.require_session(session_id)
            vendor = next((v for v in session.vendors if v.id == vendor_id), None)
            if vendor is None:
                raise VendorNotFoundError(
                    "Vendor not found", details={"sessionId": session_id, "vendorId": vendor_id}
                )
            superseded = self._store.select_vendor(session_id, vendor)
            if superseded is not None:
                self._simulator.cancel(superseded.id)
            self._store.set_journey_status(session_id, JourneyStatus.CALLING_VENDOR)
            self._store.add_message(
                session_id, MessageRole.ASSISTANT, build_vendor_selected_message(vendor.name)
            )
            logger.info("Vendor selected: %s", vendor.name)
            return vendor
