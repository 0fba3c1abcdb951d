"""
Payment lifecycle after a successful negotiation.

    awaiting-approval -> approved -> processing -> completed
    awaiting-approval -> rejected
    processing        -> failed (any settlement step error)

Settlement runs conversion, then the wallet transfer, then the payout. Each
step's reference is written to the transaction before the next step starts,
so a failure leaves an accurate record of what already happened. Failed
settlements are never retried automatically.
"""

import logging
from typing import Optional

from negotiator.config import PaymentConfig, TelephonyConfig, settings
from negotiator.errors import SettlementError, TransactionStateError, VendorNotSelectedError
from negotiator.logging_context import bind_call, get_call_logger
from negotiator.prompts.chat_messages import (
    PAYMENT_COMPLETED_MESSAGE,
    PAYMENT_REJECTED_MESSAGE,
    build_payment_failed_message,
)
from negotiator.schemas.session_schema import (
    Call,
    JourneyStatus,
    MessageRole,
    Transaction,
    TransactionStatus,
)
from negotiator.store.session_store import SessionStore
from negotiator.tools.settlement import (
    CurrencyConverter,
    PayoutProvider,
    SimulatedCurrencyConverter,
    SimulatedPayoutProvider,
    SimulatedWalletTransfer,
    WalletTransfer,
    calculate_total_cost,
)
from negotiator.utils import utc_now

logger = get_call_logger(__name__)

DECIDABLE_STATUSES = frozenset({TransactionStatus.PENDING, TransactionStatus.AWAITING_APPROVAL})


class PaymentCoordinator:
    """Creates, approves and settles the transaction for a negotiated call."""

    def __init__(
        self,
        store: SessionStore,
        converter: Optional[CurrencyConverter] = None,
        wallet: Optional[WalletTransfer] = None,
        payouts: Optional[PayoutProvider] = None,
        config: PaymentConfig = settings.payment,
        telephony_config: TelephonyConfig = settings.telephony,
    ) -> None:
        self._store = store
        self._converter = converter or SimulatedCurrencyConverter(config)
        self._wallet = wallet or SimulatedWalletTransfer()
        self._payouts = payouts or SimulatedPayoutProvider()
        self._config = config
        self._default_phone = telephony_config.default_vendor_phone

    def request_approval(self, session_id: str, call: Call) -> Transaction:
        """
        Create the transaction awaiting the user's approval.

        Caller must hold the session lock. Repeated requests for the same
        call return the existing transaction.

        Raises:
            TransactionStateError: If the call has no negotiated price.
        """
        session = self._store.require_session(session_id)
        existing = session.transaction
        if existing is not None and existing.call_id == call.id:
            return existing
        if call.negotiated_price is None:
            raise TransactionStateError(
                "Call has no negotiated price", details={"callId": call.id}
            )

        quote = calculate_total_cost(
            float(call.negotiated_price),
            target_currency=self._config.payout_currency,
            source_currency=self._config.source_currency,
            fee=self._config.conversion_fee,
        )
        transaction = Transaction(
            vendor_id=call.vendor_id,
            call_id=call.id,
            amount=float(call.negotiated_price),
            currency=self._config.payout_currency,
            status=TransactionStatus.AWAITING_APPROVAL,
            source_currency=self._config.source_currency,
            exchange_rate=quote["exchange_rate"],
            conversion_fee=quote["fee"],
            total_source_amount=quote["total_source"],
        )
        self._store.set_transaction(session_id, transaction)
        logger.info(
            "Transaction %s awaiting approval: %.0f %s (%.4f %s)",
            transaction.id, transaction.amount, transaction.currency,
            quote["total_source"], self._config.source_currency,
        )
        return transaction

    async def approve(self, session_id: str) -> Transaction:
        bind_call(session_id)
        async with self._store.lock(session_id):
            transaction = self._require_decidable(session_id)
            transaction = self._store.update_transaction(
                session_id, status=TransactionStatus.APPROVED
            )
            logger.info("Transaction %s approved", transaction.id)
            return transaction.model_copy()

    async def reject(self, session_id: str) -> Transaction:
        bind_call(session_id)
        async with self._store.lock(session_id):
            transaction = self._require_decidable(session_id)
            transaction = self._store.update_transaction(
                session_id, status=TransactionStatus.REJECTED
            )
            self._store.set_journey_status(session_id, JourneyStatus.SELECTING_VENDOR)
            self._store.add_message(session_id, MessageRole.ASSISTANT, PAYMENT_REJECTED_MESSAGE)
            logger.info("Transaction %s rejected", transaction.id)
            return transaction.model_copy()

    async def process(
        self,
        session_id: str,
        amount: Optional[float] = None,
        vendor_phone: Optional[str] = None,
    ) -> Transaction:
        """
        Settle an approved transaction.

        With no transaction at all and an explicit ``amount``, an approved
        transaction is created first for callers that skip the approval step.

        Raises:
            TransactionStateError: If the transaction is not approved.
            SettlementError: If a settlement step fails; the transaction is
                marked failed first.
        """
        bind_call(session_id)
        async with self._store.lock(session_id):
            session = self._store.require_session(session_id)
            transaction = session.transaction
            if transaction is None and amount is not None:
                transaction = self._synthesize_approved(session_id, amount)
            if transaction is None:
                raise TransactionStateError(
                    "No transaction to process", details={"sessionId": session_id}
                )
            if transaction.status != TransactionStatus.APPROVED:
                raise TransactionStateError(
                    f"Transaction is {transaction.status.value}, not approved",
                    details={"transactionId": transaction.id},
                )

            vendor = session.selected_vendor
            destination = vendor_phone or (vendor.phone if vendor else None) or self._default_phone
            self._store.update_transaction(session_id, status=TransactionStatus.PROCESSING)
            self._store.set_journey_status(session_id, JourneyStatus.PROCESSING_PAYMENT)

            try:
                await self._settle(session_id, transaction, destination)
            except SettlementError as exc:
                self._store.update_transaction(
                    session_id, status=TransactionStatus.FAILED, failure_reason=exc.message
                )
                self._store.add_message(
                    session_id, MessageRole.ASSISTANT, build_payment_failed_message(exc.message)
                )
                logger.error("Settlement failed for %s: %s", transaction.id, exc.message)
                raise
            except Exception as exc:
                reason = f"Settlement provider error: {exc}"
                self._store.update_transaction(
                    session_id, status=TransactionStatus.FAILED, failure_reason=reason
                )
                self._store.add_message(
                    session_id, MessageRole.ASSISTANT, build_payment_failed_message(reason)
                )
                logger.exception("Settlement crashed for %s", transaction.id)
                raise SettlementError(reason, details={"transactionId": transaction.id}) from exc

            transaction = self._store.update_transaction(
                session_id, status=TransactionStatus.COMPLETED, completed_at=utc_now()
            )
            self._store.set_journey_status(session_id, JourneyStatus.COMPLETED)
            self._store.add_message(session_id, MessageRole.ASSISTANT, PAYMENT_COMPLETED_MESSAGE)
            logger.info("Transaction %s completed", transaction.id)
            return transaction.model_copy()

    async def _settle(self, session_id: str, transaction: Transaction, destination: str) -> None:
        source_currency = transaction.source_currency or self._config.source_currency
        if transaction.total_source_amount is None:
            quote = calculate_total_cost(
                transaction.amount,
                target_currency=transaction.currency,
                source_currency=source_currency,
                fee=self._config.conversion_fee,
            )
            self._store.update_transaction(
                session_id,
                source_currency=source_currency,
                exchange_rate=quote["exchange_rate"],
                conversion_fee=quote["fee"],
                total_source_amount=quote["total_source"],
            )
        total_source = transaction.total_source_amount

        conversion = await self._converter.convert(
            total_source, source_currency, transaction.currency
        )
        self._store.update_transaction(
            session_id,
            conversion_reference=conversion["reference"],
            amount_received=conversion["amount_received"],
        )

        transfer = await self._wallet.transfer(
            total_source,
            source_currency,
            self._config.wallet_address,
            metadata={"sessionId": session_id, "vendorId": transaction.vendor_id},
        )
        self._store.update_transaction(session_id, transfer_reference=transfer["reference"])

        payout = await self._payouts.create_payout(
            conversion["amount_received"],
            transaction.currency,
            destination,
            metadata={"sessionId": session_id, "vendorId": transaction.vendor_id},
        )
        self._store.update_transaction(session_id, payout_reference=payout["reference"])

    def _require_decidable(self, session_id: str) -> Transaction:
        transaction = self._store.require_session(session_id).transaction
        if transaction is None:
            raise TransactionStateError(
                "No transaction for this session", details={"sessionId": session_id}
            )
        if transaction.status not in DECIDABLE_STATUSES:
            raise TransactionStateError(
                f"Transaction is already {transaction.status.value}",
                details={"transactionId": transaction.id},
            )
        return transaction

    def _synthesize_approved(self, session_id: str, amount: float) -> Transaction:
        session = self._store.require_session(session_id)
        if session.selected_vendor is None:
            raise VendorNotSelectedError(
                "Select a vendor before paying", details={"sessionId": session_id}
            )
        call_id = session.current_call.id if session.current_call else None
        transaction = Transaction(
            vendor_id=session.selected_vendor.id,
            call_id=call_id,
            amount=float(amount),
            currency=self._config.payout_currency,
            status=TransactionStatus.APPROVED,
            source_currency=self._config.source_currency,
        )
        logger.info("Created approved transaction %s for direct payment", transaction.id)
        return self._store.set_transaction(session_id, transaction)
