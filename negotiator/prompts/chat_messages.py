"""Assistant chat messages emitted as the journey progresses.

Every failure message ends with a concrete next step for the user.
"""

from typing import Optional


def format_rupees(amount: float) -> str:
    """Format a rupee amount with thousands separators."""
    return f"₹{amount:,.0f}"


def build_vendor_selected_message(vendor_name: str) -> str:
    return (
        f"Great choice! I'll contact {vendor_name} to negotiate the best price for you. "
        "Please wait while I make the call..."
    )


def build_negotiated_price_message(price: int) -> str:
    return (
        f"Great news! I've negotiated a price of {format_rupees(price)} for your "
        "Banarasi saree. Ready to proceed with payment?"
    )


def build_no_answer_message(vendor_name: Optional[str]) -> str:
    who = vendor_name or "The vendor"
    return (
        f"{who} didn't pick up the call. "
        "Would you like to choose another vendor from the list?"
    )


def build_call_failed_message(vendor_name: Optional[str]) -> str:
    who = vendor_name or "the vendor"
    return (
        f"I couldn't get through to {who}. "
        "Please pick another vendor and I'll try again."
    )


def build_hung_up_message(vendor_name: Optional[str]) -> str:
    who = vendor_name or "The vendor"
    return (
        f"{who} ended the call before we could agree on a price. "
        "Would you like me to try another vendor?"
    )


def build_ambiguous_outcome_message(vendor_name: Optional[str]) -> str:
    who = vendor_name or "the vendor"
    return (
        f"I spoke with {who} but couldn't confirm a final price. "
        "You can select the same vendor to try again or choose another one."
    )


def build_negotiation_timeout_message(vendor_name: Optional[str]) -> str:
    who = vendor_name or "The vendor"
    return (
        f"{who} stopped responding during the negotiation. "
        "Please choose another vendor and I'll call them for you."
    )


def build_vendor_declined_message(vendor_name: Optional[str]) -> str:
    who = vendor_name or "The vendor"
    return (
        f"{who} doesn't have Banarasi sarees available right now. "
        "Let's try another vendor from the list."
    )


CHAT_UNAVAILABLE_MESSAGE = (
    "Sorry, I couldn't process that just now. "
    "Please send your message again in a moment."
)

PAYMENT_REJECTED_MESSAGE = (
    "No problem, I've cancelled this payment. "
    "Would you like to choose another vendor?"
)

PAYMENT_COMPLETED_MESSAGE = (
    "Payment successful! Your transaction has been completed. "
    "The vendor will contact you shortly to arrange delivery."
)


def build_payment_failed_message(reason: str) -> str:
    return (
        f"The payment couldn't be completed ({reason}). "
        "Nothing more will be charged automatically. "
        "You can approve a new payment or choose another vendor."
    )
