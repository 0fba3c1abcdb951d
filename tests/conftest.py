"""Shared test fixtures and helpers."""

import random
from dataclasses import replace
from typing import Optional

import pytest

from negotiator.config import SimulationConfig, settings
from negotiator.container import Services, build_services
from negotiator.conversation.classifier import KeywordAffirmativeClassifier
from negotiator.conversation.state_machine import NegotiationStateMachine
from negotiator.errors import TelephonyError
from negotiator.schemas.session_schema import (
    Call,
    CallStatus,
    ConversationState,
    NegotiationStage,
    Session,
)
from negotiator.store.session_store import SessionStore
from negotiator.tools.vendors import builtin_vendors
from negotiator.voice.renderer import VoiceResponseRenderer

TEST_BASE_URL = "https://negotiator.test"

INSTANT_SIMULATION = SimulationConfig(
    in_progress_delay_sec=0.0,
    negotiating_delay_sec=0.0,
    completion_delay_sec=0.0,
    call_duration_sec=45,
    price_min=8000,
    price_max=13000,
)


class RecordingCallPlacer:
    """Accepts every call and remembers what was dialed."""

    def __init__(self, sid: str = "CA-test-0001") -> None:
        self.sid = sid
        self.calls: list[tuple[str, str, str]] = []

    async def place_call(self, to_number: str, voice_document_url: str,
                         status_callback_url: str) -> str:
        self.calls.append((to_number, voice_document_url, status_callback_url))
        return self.sid


class FailingCallPlacer:
    """Provider that is always down."""

    def __init__(self) -> None:
        self.attempts = 0

    async def place_call(self, to_number: str, voice_document_url: str,
                         status_callback_url: str) -> str:
        self.attempts += 1
        raise TelephonyError("Telephony provider not configured")


@pytest.fixture
def classifier():
    return KeywordAffirmativeClassifier()


@pytest.fixture
def state_machine():
    return NegotiationStateMachine()


@pytest.fixture
def renderer():
    return VoiceResponseRenderer(base_url=TEST_BASE_URL)


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def placer():
    return RecordingCallPlacer()


@pytest.fixture
def services(placer):
    config = replace(
        settings,
        simulation=INSTANT_SIMULATION,
        telephony=replace(settings.telephony, public_base_url=TEST_BASE_URL),
    )
    return build_services(config, placer=placer, rng=random.Random(7))


@pytest.fixture
def offline_services():
    """Services whose telephony always fails, so calls are simulated."""
    config = replace(
        settings,
        simulation=INSTANT_SIMULATION,
        telephony=replace(settings.telephony, public_base_url=TEST_BASE_URL),
    )
    return build_services(config, placer=FailingCallPlacer(), rng=random.Random(7))


def make_session_with_call(
    store: SessionStore,
    stage: NegotiationStage = NegotiationStage.GREETING,
    status: CallStatus = CallStatus.RINGING,
    initial_price: int = 8000,
    negotiated_price: Optional[int] = None,
    **state_fields,
) -> tuple[Session, Call]:
    """Create a session with a selected vendor and a live call."""
    session = store.create_session()
    vendors = builtin_vendors()
    store.set_vendors(session.id, vendors)
    store.select_vendor(session.id, vendors[0])
    call = Call(
        vendor_id=vendors[0].id,
        status=status,
        negotiated_price=negotiated_price,
        conversation_state=ConversationState(
            stage=stage, quantity=5, initial_price=initial_price, **state_fields
        ),
    )
    store.set_current_call(session.id, call)
    return session, call


def assistant_messages(session: Session) -> list[str]:
    return [m.content for m in session.messages if m.role.value == "assistant"]
