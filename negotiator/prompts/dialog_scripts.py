"""
Scripted prompts for every negotiation stage.

Each stage has the line spoken to the vendor and a fallback line spoken
when the gather produced nothing. Prompts are Hinglish so the hi-IN voice
reads them naturally; placeholders are filled from the ConversationState.
"""

from dataclasses import dataclass
from typing import Optional

from negotiator.schemas.session_schema import ConversationState, NegotiationStage

# Spoken when a placeholder value has not been negotiated yet.
DEFAULT_QUANTITY = 5
DEFAULT_INITIAL_PRICE = 8000
DEFAULT_VENDOR_PRICE = 10000
DEFAULT_FINAL_PRICE = 9000


@dataclass(frozen=True)
class DialogScript:
    """Prompt template and fallback line for one stage."""
    prompt: str
    fallback: Optional[str] = None


DIALOG_SCRIPTS: dict[NegotiationStage, DialogScript] = {
    NegotiationStage.GREETING: DialogScript(
        prompt=(
            "Namaste! Main ek customer ki taraf se call kar rahi hoon. "
            "Kya aapke paas Banarasi saree available hai? "
            "Haan ke liye 1 dabaiye, nahi ke liye 2 dabaiye."
        ),
        fallback="Maaf kijiye, mujhe aapka jawab sunai nahi diya.",
    ),
    NegotiationStage.ASK_REQUIREMENTS: DialogScript(
        prompt=(
            "Bahut accha. Customer ko {quantity} saree chahiye. "
            "Kripya bataiye aap kitni saree de sakte hain aur ek saree ka daam kya hoga?"
        ),
        fallback="Kripya quantity aur daam bataiye.",
    ),
    NegotiationStage.NEGOTIATE_PRICE: DialogScript(
        prompt=(
            "Dhanyavaad. Customer ka budget {initial_price} rupaye hai. "
            "Kya aap {initial_price} rupaye mein de sakte hain? "
            "Haan ke liye 1 dabaiye, ya apna daam bataiye."
        ),
        fallback="Kripya bataiye, kya {initial_price} rupaye theek hai?",
    ),
    NegotiationStage.COUNTER_OFFER: DialogScript(
        prompt=(
            "Aapne {vendor_price} rupaye bataye. Hum beech ka daam {final_price} rupaye "
            "offer karte hain. Kya yeh aapko manzoor hai? Haan ke liye 1 dabaiye."
        ),
        fallback="Kya {final_price} rupaye aapko theek lagta hai?",
    ),
    NegotiationStage.FINAL_AGREEMENT: DialogScript(
        prompt=(
            "Bahut badhiya! {quantity} saree ke liye {final_price} rupaye tay hua. "
            "Payment jaldi bhej diya jayega. Dhanyavaad!"
        ),
    ),
    NegotiationStage.NO_SAREE: DialogScript(
        prompt="Koi baat nahi. Aapke samay ke liye dhanyavaad. Namaste!",
    ),
    NegotiationStage.TIMEOUT: DialogScript(
        prompt=(
            "Lagta hai abhi baat nahi ho pa rahi. Hum aapko baad mein call karenge. "
            "Dhanyavaad!"
        ),
    ),
    NegotiationStage.ENDED: DialogScript(
        prompt="Call samapt ho rahi hai. Dhanyavaad!",
    ),
}

APOLOGY_PROMPT = (
    "Maaf kijiye, hum aapka jawab samajh nahi paaye. "
    "Hum baad mein dobara call karenge. Dhanyavaad!"
)

ERROR_PROMPT = "Maaf kijiye, kuch gadbad ho gayi. Hum baad mein call karenge. Dhanyavaad!"


def fill_template(template: str, state: Optional[ConversationState]) -> str:
    """Substitute negotiation numbers, falling back to fixed defaults."""
    state = state or ConversationState()
    return template.format(
        quantity=state.quantity if state.quantity is not None else DEFAULT_QUANTITY,
        initial_price=(
            state.initial_price if state.initial_price is not None else DEFAULT_INITIAL_PRICE
        ),
        vendor_price=(
            state.vendor_price if state.vendor_price is not None else DEFAULT_VENDOR_PRICE
        ),
        final_price=state.final_price if state.final_price is not None else DEFAULT_FINAL_PRICE,
    )
