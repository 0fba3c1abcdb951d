"""
Shopping chat responder.

In production, this would call a hosted language model that replies and
extracts the search intent in one request. The keyword responder covers the
same contract offline.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from negotiator.schemas.session_schema import JourneyStatus, Message, Vendor

logger = logging.getLogger(__name__)

SEARCH_KEYWORDS = ["find", "search", "looking for", "saree", "sari", "vendor", "shop"]

KNOWN_LOCATIONS = ["varanasi", "banaras", "kashi", "delhi", "mumbai", "kolkata", "lucknow"]


@dataclass(frozen=True)
class ChatIntent:
    want_to_search: bool = False
    location: Optional[str] = None
    preferences: Optional[str] = None


@dataclass(frozen=True)
class ChatReply:
    text: str
    intent: ChatIntent


class ChatResponder(Protocol):
    async def generate_response_with_intent(
        self,
        user_message: str,
        history: list[Message],
        journey_status: JourneyStatus,
        vendors: list[Vendor],
    ) -> ChatReply: ...


class KeywordChatResponder:
    """Rule-based replies for the shopping conversation."""

    def extract_intent(self, user_message: str) -> ChatIntent:
        lower = user_message.lower()
        wants_search = any(keyword in lower for keyword in SEARCH_KEYWORDS)
        location = next(
            (place.title() for place in KNOWN_LOCATIONS if place in lower), None
        )
        return ChatIntent(want_to_search=wants_search, location=location)

    async def generate_response_with_intent(
        self,
        user_message: str,
        history: list[Message],
        journey_status: JourneyStatus,
        vendors: list[Vendor],
    ) -> ChatReply:
        intent = self.extract_intent(user_message)
        if intent.want_to_search:
            text = (
                "Let me find Banarasi saree vendors for you. "
                "Pick one from the list and I'll call them to negotiate the best price."
            )
        elif vendors:
            text = (
                f"I found {len(vendors)} Banarasi saree vendors near you! "
                "Please select one from the list and I'll negotiate the best price for you."
            )
        else:
            text = (
                "Hello! I'm your shopping assistant. I help you find and buy authentic "
                "Banarasi sarees. Tell me what you're looking for!"
            )
        logger.debug("Chat intent: search=%s location=%s", intent.want_to_search, intent.location)
        return ChatReply(text=text, intent=intent)
