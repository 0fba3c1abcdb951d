"""Tests for voice-dialog document rendering."""

import pytest

from negotiator.prompts.dialog_scripts import APOLOGY_PROMPT, ERROR_PROMPT
from negotiator.schemas.session_schema import ConversationState, NegotiationStage
from tests.conftest import TEST_BASE_URL

S = NegotiationStage


class TestGatherStages:
    def test_greeting_gathers_speech_and_digits(self, renderer):
        doc = renderer.render("s1", "c1", S.GREETING, ConversationState(), attempt=0)
        assert doc.gather is not None
        assert doc.gather.input == "speech dtmf"
        assert doc.gather.method == "POST"
        assert doc.gather.num_digits == 1
        assert doc.gather.language == "hi-IN"
        assert not doc.hangup

    def test_action_url_embeds_session_call_stage_attempt(self, renderer):
        doc = renderer.render("s1", "c1", S.NEGOTIATE_PRICE, ConversationState(), attempt=1)
        assert doc.gather.action_url == (
            f"{TEST_BASE_URL}/api/calls/gather/s1/c1/negotiatePrice/1"
        )

    def test_redirect_goes_to_next_attempt(self, renderer):
        doc = renderer.render("s1", "c1", S.ASK_REQUIREMENTS, ConversationState(), attempt=1)
        assert doc.redirect_url == f"{TEST_BASE_URL}/api/calls/twiml/s1/c1/askRequirements/2"

    def test_fallback_prompt_present(self, renderer):
        doc = renderer.render("s1", "c1", S.GREETING, ConversationState())
        assert doc.fallback_prompt

    def test_placeholders_filled_from_state(self, renderer):
        state = ConversationState(initial_price=7500)
        doc = renderer.render("s1", "c1", S.NEGOTIATE_PRICE, state)
        assert "7500" in doc.prompt

    def test_placeholders_default_when_unset(self, renderer):
        doc = renderer.render("s1", "c1", S.COUNTER_OFFER, ConversationState())
        assert "10000" in doc.prompt
        assert "9000" in doc.prompt


class TestRetryLimit:
    @pytest.mark.parametrize("attempt", [3, 4])
    def test_attempt_at_limit_apologises_and_hangs_up(self, renderer, attempt):
        doc = renderer.render("s1", "c1", S.GREETING, ConversationState(), attempt=attempt)
        assert doc.prompt == APOLOGY_PROMPT
        assert doc.gather is None
        assert doc.redirect_url is None
        assert doc.hangup


class TestTerminalStages:
    @pytest.mark.parametrize("stage", [S.FINAL_AGREEMENT, S.NO_SAREE, S.TIMEOUT, S.ENDED])
    def test_terminal_stage_hangs_up_without_gather(self, renderer, stage):
        doc = renderer.render("s1", "c1", stage, ConversationState(final_price=9200))
        assert doc.hangup
        assert doc.gather is None
        assert doc.redirect_url is None

    def test_final_agreement_speaks_price(self, renderer):
        state = ConversationState(quantity=3, final_price=8500)
        doc = renderer.render("s1", "c1", S.FINAL_AGREEMENT, state)
        assert "8500" in doc.prompt
        assert "3 saree" in doc.prompt

    def test_fallback_document(self, renderer):
        doc = renderer.fallback()
        assert doc.prompt == ERROR_PROMPT
        assert doc.hangup


class TestTwiml:
    def test_gather_document_serialises(self, renderer):
        doc = renderer.render("s1", "c1", S.GREETING, ConversationState())
        xml = renderer.to_twiml(doc)
        assert xml.startswith("<?xml")
        assert "<Gather" in xml
        assert 'input="speech dtmf"' in xml
        assert 'numDigits="1"' in xml
        assert 'action="https://negotiator.test/api/calls/gather/s1/c1/greeting/0"' in xml
        assert "<Redirect" in xml
        assert "<Hangup" not in xml

    def test_hangup_document_serialises(self, renderer):
        xml = renderer.to_twiml(renderer.fallback())
        assert "<Say" in xml
        assert "<Hangup />" in xml
        assert "<Gather" not in xml
