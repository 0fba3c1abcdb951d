"""Tests for the payment lifecycle coordinator."""

import asyncio

import pytest

from negotiator.errors import SettlementError, TransactionStateError
from negotiator.payments.coordinator import PaymentCoordinator
from negotiator.schemas.session_schema import (
    JourneyStatus,
    TransactionStatus,
)
from negotiator.store.session_store import SessionStore
from negotiator.tools.settlement import SimulatedWalletTransfer
from tests.conftest import assistant_messages, make_session_with_call


class CountingWallet(SimulatedWalletTransfer):
    def __init__(self) -> None:
        self.transfers = 0

    async def transfer(self, amount, currency, recipient, metadata=None):
        self.transfers += 1
        return await super().transfer(amount, currency, recipient, metadata)


class BrokenPayouts:
    async def create_payout(self, amount, currency, destination, metadata=None):
        raise SettlementError("Payout provider rejected the destination")


class CrashingPayouts:
    async def create_payout(self, amount, currency, destination, metadata=None):
        raise RuntimeError("payout backend crashed")


class SlowWallet(CountingWallet):
    async def transfer(self, amount, currency, recipient, metadata=None):
        await asyncio.sleep(0.01)
        return await super().transfer(amount, currency, recipient, metadata)


@pytest.fixture
def wallet():
    return CountingWallet()


@pytest.fixture
def payments(store, wallet):
    return PaymentCoordinator(store, wallet=wallet)


def awaiting_approval(store: SessionStore, payments: PaymentCoordinator, price: int = 9000):
    session, call = make_session_with_call(store, negotiated_price=price)
    transaction = payments.request_approval(session.id, call)
    return session, call, transaction


class TestRequestApproval:
    def test_creates_quoted_transaction(self, store, payments):
        session, call, txn = awaiting_approval(store, payments, price=8300)
        assert txn.status == TransactionStatus.AWAITING_APPROVAL
        assert txn.currency == "INR"
        assert txn.source_currency == "USDC"
        assert txn.exchange_rate == 83.0
        assert txn.conversion_fee == 1.0
        assert txn.total_source_amount == pytest.approx(101.0)
        assert session.transaction is txn

    def test_repeated_request_returns_existing(self, store, payments):
        session, call, txn = awaiting_approval(store, payments)
        assert payments.request_approval(session.id, call) is txn

    def test_requires_negotiated_price(self, store, payments):
        session, call = make_session_with_call(store)
        with pytest.raises(TransactionStateError):
            payments.request_approval(session.id, call)


class TestDecisions:
    @pytest.mark.asyncio
    async def test_approve(self, store, payments):
        session, _, _ = awaiting_approval(store, payments)
        txn = await payments.approve(session.id)
        assert txn.status == TransactionStatus.APPROVED

    @pytest.mark.asyncio
    async def test_approve_twice_rejected(self, store, payments):
        session, _, _ = awaiting_approval(store, payments)
        await payments.approve(session.id)
        with pytest.raises(TransactionStateError):
            await payments.approve(session.id)

    @pytest.mark.asyncio
    async def test_reject_resets_journey(self, store, payments):
        session, _, _ = awaiting_approval(store, payments)
        txn = await payments.reject(session.id)
        assert txn.status == TransactionStatus.REJECTED
        assert session.journey_status == JourneyStatus.SELECTING_VENDOR
        assert any("another vendor" in m for m in assistant_messages(session))

    @pytest.mark.asyncio
    async def test_reject_after_approval_rejected(self, store, payments):
        session, _, _ = awaiting_approval(store, payments)
        await payments.approve(session.id)
        with pytest.raises(TransactionStateError):
            await payments.reject(session.id)

    @pytest.mark.asyncio
    async def test_decision_without_transaction_rejected(self, store, payments):
        session, _ = make_session_with_call(store)
        with pytest.raises(TransactionStateError):
            await payments.approve(session.id)


class TestProcess:
    @pytest.mark.asyncio
    async def test_settles_approved_transaction(self, store, payments, wallet):
        session, _, _ = awaiting_approval(store, payments, price=8300)
        await payments.approve(session.id)
        txn = await payments.process(session.id)

        assert txn.status == TransactionStatus.COMPLETED
        assert txn.completed_at is not None
        assert txn.conversion_reference.startswith("conv_")
        assert txn.transfer_reference.startswith("0x")
        assert txn.payout_reference.startswith("po_")
        assert txn.amount_received == pytest.approx(8300.0)
        assert wallet.transfers == 1
        assert session.journey_status == JourneyStatus.COMPLETED
        assert any("Payment successful" in m for m in assistant_messages(session))

    @pytest.mark.asyncio
    async def test_unapproved_transaction_not_settled(self, store, payments, wallet):
        session, _, txn = awaiting_approval(store, payments)
        with pytest.raises(TransactionStateError):
            await payments.process(session.id)
        assert txn.status == TransactionStatus.AWAITING_APPROVAL
        assert txn.conversion_reference is None
        assert wallet.transfers == 0
        assert assistant_messages(session) == []

    @pytest.mark.asyncio
    async def test_completed_transaction_not_settled_again(self, store, payments, wallet):
        session, _, _ = awaiting_approval(store, payments)
        await payments.approve(session.id)
        await payments.process(session.id)
        with pytest.raises(TransactionStateError):
            await payments.process(session.id)
        assert wallet.transfers == 1

    @pytest.mark.asyncio
    async def test_direct_payment_synthesises_transaction(self, store, payments):
        session, _ = make_session_with_call(store)
        txn = await payments.process(session.id, amount=4150, vendor_phone="+919999999999")
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.amount == 4150
        assert txn.total_source_amount == pytest.approx(51.0)

    @pytest.mark.asyncio
    async def test_no_transaction_and_no_amount_rejected(self, store, payments):
        session, _ = make_session_with_call(store)
        with pytest.raises(TransactionStateError):
            await payments.process(session.id)

    @pytest.mark.asyncio
    async def test_failed_step_keeps_partial_references(self, store, wallet):
        payments = PaymentCoordinator(store, wallet=wallet, payouts=BrokenPayouts())
        session, _, _ = awaiting_approval(store, payments)
        await payments.approve(session.id)

        with pytest.raises(SettlementError):
            await payments.process(session.id)

        txn = session.transaction
        assert txn.status == TransactionStatus.FAILED
        assert txn.failure_reason == "Payout provider rejected the destination"
        assert txn.conversion_reference is not None
        assert txn.transfer_reference is not None
        assert txn.payout_reference is None
        assert wallet.transfers == 1
        assert any("couldn't be completed" in m for m in assistant_messages(session))

    @pytest.mark.asyncio
    async def test_failed_transaction_not_retried(self, store, wallet):
        payments = PaymentCoordinator(store, wallet=wallet, payouts=BrokenPayouts())
        session, _, _ = awaiting_approval(store, payments)
        await payments.approve(session.id)
        with pytest.raises(SettlementError):
            await payments.process(session.id)
        with pytest.raises(TransactionStateError):
            await payments.process(session.id)
        assert wallet.transfers == 1

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_marks_failed(self, store, wallet):
        payments = PaymentCoordinator(store, wallet=wallet, payouts=CrashingPayouts())
        session, _ = make_session_with_call(store)

        with pytest.raises(SettlementError) as excinfo:
            await payments.process(session.id, amount=9000)

        txn = session.transaction
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert txn.status == TransactionStatus.FAILED
        assert "payout backend crashed" in txn.failure_reason
        assert txn.transfer_reference is not None
        assert txn.payout_reference is None
        assert any("couldn't be completed" in m for m in assistant_messages(session))
        with pytest.raises(TransactionStateError):
            await payments.process(session.id)
        assert wallet.transfers == 1


class TestConcurrentSettlement:
    @pytest.mark.asyncio
    async def test_parallel_process_settles_once(self, store):
        wallet = SlowWallet()
        payments = PaymentCoordinator(store, wallet=wallet)
        session, _, _ = awaiting_approval(store, payments)
        await payments.approve(session.id)

        results = await asyncio.gather(
            payments.process(session.id),
            payments.process(session.id),
            return_exceptions=True,
        )

        completed = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, TransactionStateError)]
        assert len(completed) == 1
        assert len(rejected) == 1
        assert wallet.transfers == 1
        assert session.transaction.status == TransactionStatus.COMPLETED
        assert sum("Payment successful" in m for m in assistant_messages(session)) == 1
