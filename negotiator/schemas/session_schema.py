"""Session, call, negotiation and transaction data models.

Serialised with camelCase aliases so the session snapshot matches what the
chat UI polls for.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from negotiator.utils import new_id, utc_now


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class JourneyStatus(str, Enum):
    CHATTING = "chatting"
    SEARCHING_VENDORS = "searching-vendors"
    SELECTING_VENDOR = "selecting-vendor"
    CALLING_VENDOR = "calling-vendor"
    PROCESSING_PAYMENT = "processing-payment"
    COMPLETED = "completed"


class CallStatus(str, Enum):
    INITIATING = "initiating"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    NEGOTIATING = "negotiating"
    COMPLETED = "completed"
    NO_ANSWER = "no-answer"
    HUNG_UP = "hung-up"
    TIMEOUT = "timeout"
    FAILED = "failed"


TERMINAL_CALL_STATUSES = frozenset({
    CallStatus.COMPLETED,
    CallStatus.NO_ANSWER,
    CallStatus.HUNG_UP,
    CallStatus.TIMEOUT,
    CallStatus.FAILED,
})


class NegotiationStage(str, Enum):
    """Named points in the negotiation dialog tree."""
    GREETING = "greeting"
    ASK_REQUIREMENTS = "askRequirements"
    NEGOTIATE_PRICE = "negotiatePrice"
    COUNTER_OFFER = "counterOffer"
    FINAL_AGREEMENT = "finalAgreement"
    NO_SAREE = "noSaree"
    TIMEOUT = "timeout"
    ENDED = "ended"


TERMINAL_STAGES = frozenset({
    NegotiationStage.FINAL_AGREEMENT,
    NegotiationStage.NO_SAREE,
    NegotiationStage.TIMEOUT,
    NegotiationStage.ENDED,
})


class TransactionStatus(str, Enum):
    PENDING = "pending"
    AWAITING_APPROVAL = "awaiting-approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Message(CamelModel):
    """A single chat turn."""

    id: str = Field(default_factory=new_id)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)


class Vendor(CamelModel):
    """Discovered merchant. Replaced wholesale on a new search, never patched."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    address: str
    phone: str
    distance: float
    rating: Optional[float] = None
    place_id: Optional[str] = None


class ConversationState(CamelModel):
    """Negotiation variables threaded through stage transitions."""

    stage: NegotiationStage = NegotiationStage.GREETING
    quantity: Optional[int] = None
    initial_price: Optional[int] = None
    vendor_price: Optional[int] = None
    final_price: Optional[int] = None
    attempts: int = Field(default=0, ge=0)


class Call(CamelModel):
    """One telephony negotiation attempt."""

    id: str = Field(default_factory=new_id)
    vendor_id: str
    status: CallStatus = CallStatus.INITIATING
    duration: Optional[int] = None
    negotiated_price: Optional[int] = None
    transcript: Optional[str] = None
    conversation_state: ConversationState = Field(default_factory=ConversationState)
    provider_call_sid: Optional[str] = None
    simulated: bool = False
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CALL_STATUSES


class Transaction(CamelModel):
    """Payment record tied to a negotiated call outcome."""

    id: str = Field(default_factory=new_id)
    vendor_id: str
    call_id: Optional[str] = None
    amount: float
    currency: str
    status: TransactionStatus = TransactionStatus.PENDING
    source_currency: Optional[str] = None
    exchange_rate: Optional[float] = None
    conversion_fee: Optional[float] = None
    total_source_amount: Optional[float] = None
    amount_received: Optional[float] = None
    conversion_reference: Optional[str] = None
    transfer_reference: Optional[str] = None
    payout_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None


class Session(CamelModel):
    """One shopping journey."""

    id: str = Field(default_factory=new_id)
    messages: list[Message] = Field(default_factory=list)
    vendors: list[Vendor] = Field(default_factory=list)
    selected_vendor: Optional[Vendor] = None
    current_call: Optional[Call] = None
    transaction: Optional[Transaction] = None
    journey_status: JourneyStatus = JourneyStatus.CHATTING
    created_at: datetime = Field(default_factory=utc_now)
