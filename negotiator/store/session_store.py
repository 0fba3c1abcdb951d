"""
In-memory session store.

Single source of truth for sessions, their current call and transaction.
The store enforces structural rules only (a call needs a selected vendor,
selecting a vendor clears the call and transaction); business decisions
live in the driver, reconciler and payment coordinator.

Callers serialise read-modify-write sequences with the per-session lock:

    async with store.lock(session_id):
        call = store.require_call(session_id, call_id)
        store.update_call(session_id, call_id, status=CallStatus.RINGING)
"""

import asyncio
import logging
from typing import Any, Optional

from negotiator.errors import (
    CallNotFoundError,
    SessionNotFoundError,
    TransactionStateError,
    VendorNotSelectedError,
)
from negotiator.schemas.session_schema import (
    Call,
    JourneyStatus,
    Message,
    MessageRole,
    Session,
    Transaction,
    Vendor,
)

logger = logging.getLogger(__name__)


class SessionStore:
    """Holds every session plus the call-id to session-id index."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._call_index: dict[str, str] = {}

    def lock(self, session_id: str) -> asyncio.Lock:
        """Return the lock guarding ``session_id``, creating it on first use."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #

    def create_session(self, session_id: Optional[str] = None) -> Session:
        session = Session(id=session_id) if session_id else Session()
        self._sessions[session.id] = session
        logger.info("Session created: %s", session.id)
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def require_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(
                "Session not found", details={"sessionId": session_id}
            )
        return session

    def get_or_create(self, session_id: Optional[str]) -> Session:
        if session_id:
            existing = self._sessions.get(session_id)
            if existing is not None:
                return existing
        return self.create_session(session_id)

    def snapshot(self, session_id: str) -> Session:
        """Deep copy of the session, safe to serialise outside the lock."""
        return self.require_session(session_id).model_copy(deep=True)

    def add_message(self, session_id: str, role: MessageRole, content: str) -> Message:
        session = self.require_session(session_id)
        message = Message(role=role, content=content)
        session.messages.append(message)
        return message

    def set_vendors(self, session_id: str, vendors: list[Vendor]) -> None:
        session = self.require_session(session_id)
        session.vendors = list(vendors)

    def set_journey_status(self, session_id: str, status: JourneyStatus) -> None:
        session = self.require_session(session_id)
        if session.journey_status != status:
            logger.debug(
                "Journey %s: %s -> %s", session_id, session.journey_status.value, status.value
            )
        session.journey_status = status

    def select_vendor(self, session_id: str, vendor: Vendor) -> Optional[Call]:
        """
        Select ``vendor`` and drop the previous call and transaction.

        Returns:
            The call that was superseded, if any, so its timers can be cancelled.
        """
        session = self.require_session(session_id)
        superseded = session.current_call
        session.selected_vendor = vendor
        session.current_call = None
        session.transaction = None
        return superseded

    # ------------------------------------------------------------------ #
    # Calls
    # ------------------------------------------------------------------ #

    def session_for_call(self, call_id: str) -> Optional[str]:
        return self._call_index.get(call_id)

    def set_current_call(self, session_id: str, call: Call) -> Optional[Call]:
        """
        Attach ``call`` as the session's live call.

        Raises:
            VendorNotSelectedError: If no vendor is selected.

        Returns:
            The call that was replaced, if any.
        """
        session = self.require_session(session_id)
        if session.selected_vendor is None:
            raise VendorNotSelectedError(
                "Select a vendor before starting a call", details={"sessionId": session_id}
            )
        superseded = session.current_call
        session.current_call = call
        session.transaction = None
        self._call_index[call.id] = session_id
        if superseded is not None:
            logger.info("Call %s superseded by %s", superseded.id, call.id)
        return superseded

    def get_call(self, session_id: str, call_id: str) -> Optional[Call]:
        session = self.get_session(session_id)
        if session is None or session.current_call is None:
            return None
        if session.current_call.id != call_id:
            return None
        return session.current_call

    def require_call(self, session_id: str, call_id: str) -> Call:
        self.require_session(session_id)
        call = self.get_call(session_id, call_id)
        if call is None:
            raise CallNotFoundError(
                "Call not found or no longer current",
                details={"sessionId": session_id, "callId": call_id},
            )
        return call

    def update_call(self, session_id: str, call_id: str, **changes: Any) -> Call:
        call = self.require_call(session_id, call_id)
        for name, value in changes.items():
            if name not in Call.model_fields:
                raise AttributeError(f"Call has no field '{name}'")
            setattr(call, name, value)
        return call

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    def set_transaction(self, session_id: str, transaction: Transaction) -> Transaction:
        session = self.require_session(session_id)
        if session.selected_vendor is None:
            raise VendorNotSelectedError(
                "Select a vendor before creating a transaction",
                details={"sessionId": session_id},
            )
        session.transaction = transaction
        return transaction

    def update_transaction(self, session_id: str, **changes: Any) -> Transaction:
        session = self.require_session(session_id)
        transaction = session.transaction
        if transaction is None:
            raise TransactionStateError(
                "No transaction for this session", details={"sessionId": session_id}
            )
        for name, value in changes.items():
            if name not in Transaction.model_fields:
                raise AttributeError(f"Transaction has no field '{name}'")
            setattr(transaction, name, value)
        return transaction
