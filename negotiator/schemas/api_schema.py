"""Request and response bodies for the HTTP API."""

from typing import Optional

from pydantic import Field

from negotiator.schemas.session_schema import (
    Call,
    CamelModel,
    JourneyStatus,
    Message,
    Transaction,
    Vendor,
)


class ChatRequest(CamelModel):
    message: str = Field(min_length=1)
    session_id: Optional[str] = None


class ChatResponse(CamelModel):
    session_id: str
    message: Message
    vendors: Optional[list[Vendor]] = None
    journey_status: JourneyStatus


class VendorSelectRequest(CamelModel):
    session_id: str
    vendor_id: str


class VendorSelectResponse(CamelModel):
    success: bool = True
    vendor: Vendor


class CallInitiateRequest(CamelModel):
    session_id: str
    vendor_id: str
    user_budget: int = Field(gt=0)


class CallInitiateResponse(CamelModel):
    success: bool = True
    call: Call
    call_sid: str


class PaymentDecisionRequest(CamelModel):
    session_id: str


class PaymentProcessRequest(CamelModel):
    """Run settlement. ``amount`` is only used when no transaction exists yet."""

    session_id: str
    amount: Optional[float] = Field(default=None, gt=0)
    vendor_phone: Optional[str] = None


class TransactionResponse(CamelModel):
    success: bool = True
    transaction: Transaction
