"""Tests for provider status reconciliation."""

import pytest

from negotiator.calls.reconciler import StatusEvent, can_advance
from negotiator.schemas.session_schema import (
    Call,
    CallStatus,
    JourneyStatus,
    NegotiationStage,
    TransactionStatus,
)
from tests.conftest import assistant_messages, make_session_with_call


class TestRanking:
    def test_forward_progress_allowed(self):
        assert can_advance(CallStatus.RINGING, CallStatus.IN_PROGRESS)
        assert can_advance(CallStatus.NEGOTIATING, CallStatus.COMPLETED)

    def test_backward_and_same_rejected(self):
        assert not can_advance(CallStatus.NEGOTIATING, CallStatus.RINGING)
        assert not can_advance(CallStatus.RINGING, CallStatus.RINGING)

    def test_terminal_to_terminal_rejected(self):
        assert not can_advance(CallStatus.HUNG_UP, CallStatus.COMPLETED)


class TestProgressEvents:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["in-progress", "answered"])
    async def test_answered_moves_in_progress(self, services, raw):
        session, call = make_session_with_call(services.store)
        result = await services.reconciler.apply(session.id, call.id, StatusEvent(raw))
        assert result.applied
        assert call.status == CallStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_late_ringing_ignored_while_negotiating(self, services):
        session, call = make_session_with_call(services.store, status=CallStatus.NEGOTIATING)
        result = await services.reconciler.apply(session.id, call.id, StatusEvent("ringing"))
        assert not result.applied
        assert call.status == CallStatus.NEGOTIATING

    @pytest.mark.asyncio
    async def test_unknown_status_ignored(self, services):
        session, call = make_session_with_call(services.store)
        result = await services.reconciler.apply(session.id, call.id, StatusEvent("teleported"))
        assert not result.applied
        assert call.status == CallStatus.RINGING


class TestFailureOutcomes:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw,expected", [
        ("no-answer", CallStatus.NO_ANSWER),
        ("busy", CallStatus.NO_ANSWER),
        ("failed", CallStatus.FAILED),
        ("canceled", CallStatus.HUNG_UP),
    ])
    async def test_failure_resets_journey(self, services, raw, expected):
        session, call = make_session_with_call(services.store)
        services.store.set_journey_status(session.id, JourneyStatus.CALLING_VENDOR)
        await services.reconciler.apply(session.id, call.id, StatusEvent(raw))
        assert call.status == expected
        assert call.completed_at is not None
        assert session.journey_status == JourneyStatus.SELECTING_VENDOR
        assert len(assistant_messages(session)) == 1

    @pytest.mark.asyncio
    async def test_short_completed_call_is_hang_up(self, services):
        session, call = make_session_with_call(services.store)
        await services.reconciler.apply(
            session.id, call.id, StatusEvent("completed", duration_seconds=5)
        )
        assert call.status == CallStatus.HUNG_UP
        assert call.duration == 5
        assert session.journey_status == JourneyStatus.SELECTING_VENDOR

    @pytest.mark.asyncio
    async def test_short_call_with_price_is_still_hang_up(self, services):
        session, call = make_session_with_call(services.store, negotiated_price=9000)
        await services.reconciler.apply(
            session.id, call.id, StatusEvent("completed", duration_seconds=8)
        )
        assert call.status == CallStatus.HUNG_UP
        assert session.transaction is None

    @pytest.mark.asyncio
    async def test_unpriced_call_under_a_minute_is_hang_up(self, services):
        session, call = make_session_with_call(services.store)
        await services.reconciler.apply(
            session.id, call.id, StatusEvent("completed", duration_seconds=45)
        )
        assert call.status == CallStatus.HUNG_UP

    @pytest.mark.asyncio
    async def test_missing_duration_counts_as_zero(self, services):
        session, call = make_session_with_call(services.store, negotiated_price=9000)
        await services.reconciler.apply(session.id, call.id, StatusEvent("completed"))
        assert call.status == CallStatus.HUNG_UP
        assert call.duration == 0

    @pytest.mark.asyncio
    async def test_voicemail_without_price_is_no_answer(self, services):
        session, call = make_session_with_call(services.store)
        await services.reconciler.apply(
            session.id, call.id,
            StatusEvent("completed", duration_seconds=70, answered_by="machine_end_beep"),
        )
        assert call.status == CallStatus.NO_ANSWER


class TestCompletedOutcomes:
    @pytest.mark.asyncio
    async def test_priced_call_requests_payment(self, services):
        session, call = make_session_with_call(services.store, negotiated_price=9000)
        result = await services.reconciler.apply(
            session.id, call.id, StatusEvent("completed", duration_seconds=90)
        )
        assert result.status == CallStatus.COMPLETED
        assert call.status == CallStatus.COMPLETED
        assert session.journey_status == JourneyStatus.PROCESSING_PAYMENT
        assert session.transaction is not None
        assert session.transaction.status == TransactionStatus.AWAITING_APPROVAL
        assert session.transaction.amount == 9000
        assert session.transaction.call_id == call.id
        assert any("₹9,000" in m for m in assistant_messages(session))

    @pytest.mark.asyncio
    async def test_long_unpriced_call_is_ambiguous(self, services):
        session, call = make_session_with_call(services.store)
        await services.reconciler.apply(
            session.id, call.id, StatusEvent("completed", duration_seconds=120)
        )
        assert call.status == CallStatus.COMPLETED
        assert session.journey_status == JourneyStatus.SELECTING_VENDOR
        assert session.transaction is None
        assert any("couldn't confirm" in m for m in assistant_messages(session))

    @pytest.mark.asyncio
    async def test_declined_call_not_announced_twice(self, services):
        session, call = make_session_with_call(
            services.store, stage=NegotiationStage.NO_SAREE, status=CallStatus.NEGOTIATING
        )
        await services.reconciler.apply(
            session.id, call.id, StatusEvent("completed", duration_seconds=75)
        )
        assert call.status == CallStatus.COMPLETED
        assert assistant_messages(session) == []


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_duplicate_completed_callbacks(self, services):
        session, call = make_session_with_call(services.store, negotiated_price=9000)
        event = StatusEvent("completed", duration_seconds=90)
        first = await services.reconciler.apply(session.id, call.id, event)
        transaction_id = session.transaction.id
        second = await services.reconciler.apply(session.id, call.id, event)

        assert first.applied
        assert not second.applied
        assert len(assistant_messages(session)) == 1
        assert session.transaction.id == transaction_id
        assert session.journey_status == JourneyStatus.PROCESSING_PAYMENT

    @pytest.mark.asyncio
    async def test_duplicate_no_answer_callbacks(self, services):
        session, call = make_session_with_call(services.store)
        await services.reconciler.apply(session.id, call.id, StatusEvent("no-answer"))
        await services.reconciler.apply(session.id, call.id, StatusEvent("no-answer"))
        assert len(assistant_messages(session)) == 1

    @pytest.mark.asyncio
    async def test_superseded_call_ignored(self, services):
        session, old = make_session_with_call(services.store)
        new = Call(vendor_id=old.vendor_id)
        services.store.set_current_call(session.id, new)
        result = await services.reconciler.apply(session.id, old.id, StatusEvent("no-answer"))
        assert not result.applied
        assert new.status == CallStatus.INITIATING
        assert assistant_messages(session) == []

    @pytest.mark.asyncio
    async def test_unknown_session_ignored(self, services):
        result = await services.reconciler.apply("nope", "nope", StatusEvent("completed"))
        assert not result.applied
