from negotiator.conversation.classifier import (
    AffirmativeClassifier,
    Affirmation,
    KeywordAffirmativeClassifier,
)
from negotiator.conversation.state_machine import (
    InvalidTransitionError,
    NegotiationStateMachine,
    TurnResult,
    TurnTrigger,
)

__all__ = [
    "NegotiationStateMachine",
    "TurnResult",
    "TurnTrigger",
    "InvalidTransitionError",
    "AffirmativeClassifier",
    "Affirmation",
    "KeywordAffirmativeClassifier",
]
