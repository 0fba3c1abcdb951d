"""
Affirmative/negative classification of a vendor's turn.

The state machine only asks "did the vendor say yes, no, or neither?" and,
on the counter-offer stage, "did the vendor accept?". The keyword policy
below answers both for Hindi, Hinglish and English speech plus keypad
digits. Swap in any object with the same two methods to change the policy.
"""

import logging
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class Affirmation(str, Enum):
    YES = "yes"
    NO = "no"
    UNRECOGNIZED = "unrecognized"


class AffirmativeClassifier(Protocol):
    def classify(self, text: str, digits: str) -> Affirmation: ...

    def is_agreement(self, text: str, digits: str) -> bool: ...


class KeywordAffirmativeClassifier:
    """Case-insensitive substring matching against fixed keyword lists."""

    YES_DIGIT = "1"
    NO_DIGIT = "2"

    YES_KEYWORDS = ["हाँ", "हां", "haan", "han ji", "ha ji", "yes", "yeah"]

    NO_KEYWORDS = ["नहीं", "nahi", "nahin", "no"]

    AGREEMENT_KEYWORDS = [
        "ठीक", "चलेगा", "theek", "thik", "chalega",
        "okay", "ok", "agreed", "agree", "done", "deal",
    ]

    def classify(self, text: str, digits: str) -> Affirmation:
        digits = (digits or "").strip()
        lower = (text or "").strip().lower()

        if digits == self.YES_DIGIT:
            return Affirmation.YES
        if digits == self.NO_DIGIT:
            return Affirmation.NO

        for keyword in self.YES_KEYWORDS:
            if keyword in lower:
                return Affirmation.YES
        for keyword in self.NO_KEYWORDS:
            if keyword in lower:
                return Affirmation.NO
        return Affirmation.UNRECOGNIZED

    def is_agreement(self, text: str, digits: str) -> bool:
        if self.classify(text, digits) == Affirmation.YES:
            return True
        lower = (text or "").strip().lower()
        for keyword in self.AGREEMENT_KEYWORDS:
            if keyword in lower:
                logger.debug("Agreement keyword matched: '%s'", keyword)
                return True
        return False
