"""
Domain exception hierarchy.

Each error carries the HTTP status the API boundary answers with. Voice
endpoints never surface these to the telephony provider; they render a
fallback document instead.
"""

from typing import Any, Optional


class NegotiatorError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class SessionNotFoundError(NegotiatorError):
    """No session exists for the given identifier."""

    status_code = 404


class CallNotFoundError(NegotiatorError):
    """The session has no call, or not the call that was referenced."""

    status_code = 404


class VendorNotFoundError(NegotiatorError):
    """The vendor is not part of the session's discovered vendors."""

    status_code = 404


class VendorNotSelectedError(NegotiatorError):
    """A call or transaction was requested before a vendor was selected."""

    status_code = 409


class TransactionStateError(NegotiatorError):
    """The transaction is not in a state that allows the requested step."""

    status_code = 409


class TelephonyError(NegotiatorError):
    """The telephony provider could not place or manage the call."""

    status_code = 502


class SettlementError(NegotiatorError):
    """A conversion, transfer or payout step failed."""

    status_code = 502
