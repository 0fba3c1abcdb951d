"""
Finite state machine for the vendor price negotiation call.

One vendor turn (speech transcript and/or keypad digits) is classified into
a trigger, the trigger selects an explicit transition from the table below,
and the negotiation numbers are updated on the way. The machine is pure: it
takes a ConversationState and returns a new one, leaving persistence and
user-facing side effects to the caller.

The dialog is deliberately shallow. After the vendor states a price the
buyer offers the midpoint, and the counter-offer round always closes the
deal (with one small concession if the vendor pushes back). That bounds call
duration and cost; it is a policy, not a market model.

Usage:
    sm = NegotiationStateMachine()
    state = ConversationState(initial_price=8000)
    result = sm.advance(state, text="", digits="1")
    assert result.state.stage == NegotiationStage.ASK_REQUIREMENTS
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from negotiator.config import NegotiationConfig, settings
from negotiator.conversation.classifier import (
    AffirmativeClassifier,
    Affirmation,
    KeywordAffirmativeClassifier,
)
from negotiator.schemas.session_schema import (
    TERMINAL_STAGES,
    ConversationState,
    NegotiationStage,
)
from negotiator.utils import extract_numbers, round_half_up

logger = logging.getLogger(__name__)


class TurnTrigger(str, Enum):
    """Classified outcome of one vendor turn."""
    AFFIRMED = "affirmed"
    DECLINED = "declined"
    DETAILS_GIVEN = "details_given"
    PRICE_COUNTERED = "price_countered"
    NO_RESPONSE = "no_response"
    MAX_ATTEMPTS = "max_attempts"


@dataclass(frozen=True)
class Transition:
    """A single valid stage transition."""
    from_stage: NegotiationStage
    to_stage: NegotiationStage
    trigger: TurnTrigger


@dataclass(frozen=True)
class TurnResult:
    """Outcome of applying one vendor turn."""
    state: ConversationState
    previous_stage: NegotiationStage
    trigger: Optional[TurnTrigger]

    @property
    def stage_changed(self) -> bool:
        return self.state.stage != self.previous_stage

    @property
    def is_terminal(self) -> bool:
        return self.state.stage in TERMINAL_STAGES


class InvalidTransitionError(Exception):
    """Raised when a trigger has no transition from the current stage."""


S = NegotiationStage
T = TurnTrigger


class NegotiationStateMachine:
    """
    Deterministic negotiation dialog driver.

    Every transition is listed explicitly. Retry triggers loop on the same
    stage and increment ``attempts``; every other transition resets it.
    """

    TRANSITIONS: list[Transition] = [
        # --- Greeting: does the vendor stock the item? ---
        Transition(S.GREETING, S.ASK_REQUIREMENTS, T.AFFIRMED),
        Transition(S.GREETING, S.NO_SAREE, T.DECLINED),
        Transition(S.GREETING, S.GREETING, T.NO_RESPONSE),
        Transition(S.GREETING, S.NO_SAREE, T.MAX_ATTEMPTS),

        # --- Requirements: quantity and the vendor's price ---
        Transition(S.ASK_REQUIREMENTS, S.NEGOTIATE_PRICE, T.DETAILS_GIVEN),
        Transition(S.ASK_REQUIREMENTS, S.ASK_REQUIREMENTS, T.NO_RESPONSE),
        Transition(S.ASK_REQUIREMENTS, S.TIMEOUT, T.MAX_ATTEMPTS),

        # --- Opening offer ---
        Transition(S.NEGOTIATE_PRICE, S.FINAL_AGREEMENT, T.AFFIRMED),
        Transition(S.NEGOTIATE_PRICE, S.COUNTER_OFFER, T.PRICE_COUNTERED),
        Transition(S.NEGOTIATE_PRICE, S.NEGOTIATE_PRICE, T.NO_RESPONSE),
        Transition(S.NEGOTIATE_PRICE, S.TIMEOUT, T.MAX_ATTEMPTS),

        # --- Midpoint counter-offer, always closes ---
        Transition(S.COUNTER_OFFER, S.FINAL_AGREEMENT, T.AFFIRMED),
        Transition(S.COUNTER_OFFER, S.FINAL_AGREEMENT, T.PRICE_COUNTERED),
        Transition(S.COUNTER_OFFER, S.COUNTER_OFFER, T.NO_RESPONSE),
        Transition(S.COUNTER_OFFER, S.TIMEOUT, T.MAX_ATTEMPTS),
    ]

    def __init__(
        self,
        classifier: Optional[AffirmativeClassifier] = None,
        config: NegotiationConfig = settings.negotiation,
    ) -> None:
        self._classifier = classifier or KeywordAffirmativeClassifier()
        self._config = config

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def advance(self, state: ConversationState, text: str = "", digits: str = "") -> TurnResult:
        """
        Apply one vendor turn to the negotiation.

        Args:
            state: Current negotiation state; not modified.
            text: Speech transcript, possibly empty.
            digits: Keypad input, possibly empty.

        Returns:
            TurnResult with the updated copy of the state.
        """
        current = state.stage
        if current in TERMINAL_STAGES:
            return TurnResult(state=state.model_copy(), previous_stage=current, trigger=None)

        text = (text or "").strip()
        digits = (digits or "").strip()
        updated = state.model_copy()

        if current == S.GREETING:
            trigger = self._on_greeting(updated, text, digits)
        elif current == S.ASK_REQUIREMENTS:
            trigger = self._on_ask_requirements(updated, text, digits)
        elif current == S.NEGOTIATE_PRICE:
            trigger = self._on_negotiate_price(updated, text, digits)
        else:
            trigger = self._on_counter_offer(updated, text, digits)

        if trigger == T.NO_RESPONSE and updated.attempts + 1 >= self._config.max_attempts:
            trigger = T.MAX_ATTEMPTS

        next_stage = self._resolve(current, trigger)
        if next_stage == current:
            updated.attempts += 1
        else:
            updated.attempts = 0
        updated.stage = next_stage

        logger.debug(
            "Negotiation turn: %s -> %s (trigger: %s, attempts: %d)",
            current.value, next_stage.value, trigger.value, updated.attempts,
        )
        return TurnResult(state=updated, previous_stage=current, trigger=trigger)

    def get_valid_triggers(self, stage: NegotiationStage) -> list[TurnTrigger]:
        """Return all triggers valid from ``stage``."""
        return [t.trigger for t in self.TRANSITIONS if t.from_stage == stage]

    # ------------------------------------------------------------------ #
    # Stage handlers: classify the turn and update negotiation numbers
    # ------------------------------------------------------------------ #

    def _on_greeting(self, state: ConversationState, text: str, digits: str) -> TurnTrigger:
        answer = self._classifier.classify(text, digits)
        if answer == Affirmation.YES:
            return T.AFFIRMED
        if answer == Affirmation.NO:
            return T.DECLINED
        return T.NO_RESPONSE

    def _on_ask_requirements(
        self, state: ConversationState, text: str, digits: str
    ) -> TurnTrigger:
        if not text and not digits:
            return T.NO_RESPONSE
        numbers = extract_numbers(text)
        state.quantity = numbers[0] if numbers else self._config.default_quantity
        if len(numbers) > 1:
            state.vendor_price = numbers[1]
        return T.DETAILS_GIVEN

    def _on_negotiate_price(
        self, state: ConversationState, text: str, digits: str
    ) -> TurnTrigger:
        if not text and not digits:
            return T.NO_RESPONSE

        initial = self._initial_price(state)
        if self._classifier.classify(text, digits) == Affirmation.YES:
            state.final_price = initial
            return T.AFFIRMED

        numbers = extract_numbers(text)
        if numbers:
            state.vendor_price = numbers[0]
        elif state.vendor_price is None:
            state.vendor_price = initial + self._config.fallback_vendor_increment
        state.final_price = round_half_up((initial + state.vendor_price) / 2)
        return T.PRICE_COUNTERED

    def _on_counter_offer(
        self, state: ConversationState, text: str, digits: str
    ) -> TurnTrigger:
        if not text and not digits:
            return T.NO_RESPONSE
        if self._classifier.is_agreement(text, digits):
            return T.AFFIRMED

        # One closing concession, then the deal is struck regardless.
        base = state.final_price if state.final_price is not None else self._initial_price(state)
        state.final_price = base + self._config.closing_concession
        return T.PRICE_COUNTERED

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _initial_price(self, state: ConversationState) -> int:
        if state.initial_price is None:
            state.initial_price = self._config.default_initial_price
        return state.initial_price

    def _resolve(self, stage: NegotiationStage, trigger: TurnTrigger) -> NegotiationStage:
        for t in self.TRANSITIONS:
            if t.from_stage == stage and t.trigger == trigger:
                return t.to_stage
        valid = [t.value for t in self.get_valid_triggers(stage)]
        raise InvalidTransitionError(
            f"No valid transition from '{stage.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )
