"""
Mock settlement providers: stablecoin conversion, wallet transfer, payout.

In production, conversion would integrate with an off-ramp API, the
transfer with a wallet provider and the payout with a payments processor.
The simulated versions use a fixed exchange-rate table and a fixed fee so
quotes and settlements are deterministic.
"""

import asyncio
import logging
from typing import Optional, Protocol, TypedDict

from negotiator.config import PaymentConfig, settings
from negotiator.errors import SettlementError
from negotiator.utils import new_id

logger = logging.getLogger(__name__)

EXCHANGE_RATES: dict[str, float] = {
    "USDC_INR": 83.0,
    "USDC_USD": 1.0,
    "USDC_EUR": 0.92,
}

# Simulated provider latency
PROVIDER_DELAY_SEC = 0.0


class CostQuote(TypedDict):
    """What the buyer pays in the source currency for a fiat amount."""

    amount_fiat: float
    amount_source: float
    fee: float
    total_source: float
    exchange_rate: float


class ConversionResult(TypedDict):
    reference: str
    amount_source: float
    amount_received: float
    exchange_rate: float
    fee: float


class TransferResult(TypedDict):
    reference: str
    amount: float
    currency: str


class PayoutResult(TypedDict):
    reference: str
    amount: float
    currency: str
    destination: str


def get_exchange_rate(source_currency: str, target_currency: str) -> float:
    """Look up the fixed rate for a currency pair.

    Raises:
        SettlementError: If the pair is not supported.
    """
    rate = EXCHANGE_RATES.get(f"{source_currency}_{target_currency}")
    if rate is None:
        raise SettlementError(
            f"Currency pair {source_currency}/{target_currency} not supported"
        )
    return rate


def calculate_total_cost(
    amount_fiat: float,
    target_currency: str = settings.payment.payout_currency,
    source_currency: str = settings.payment.source_currency,
    fee: float = settings.payment.conversion_fee,
) -> CostQuote:
    """Quote the source-currency total for paying ``amount_fiat``, fee included."""
    rate = get_exchange_rate(source_currency, target_currency)
    amount_source = amount_fiat / rate
    return CostQuote(
        amount_fiat=amount_fiat,
        amount_source=round(amount_source, 6),
        fee=fee,
        total_source=round(amount_source + fee, 6),
        exchange_rate=rate,
    )


class CurrencyConverter(Protocol):
    async def convert(
        self, amount: float, source_currency: str, target_currency: str
    ) -> ConversionResult: ...


class WalletTransfer(Protocol):
    async def transfer(
        self, amount: float, currency: str, recipient: str, metadata: Optional[dict] = None
    ) -> TransferResult: ...


class PayoutProvider(Protocol):
    async def create_payout(
        self, amount: float, currency: str, destination: str, metadata: Optional[dict] = None
    ) -> PayoutResult: ...


class SimulatedCurrencyConverter:
    """Off-ramp conversion at the fixed rate, minus the fixed fee."""

    def __init__(self, config: PaymentConfig = settings.payment) -> None:
        self._fee = config.conversion_fee

    async def convert(
        self, amount: float, source_currency: str, target_currency: str
    ) -> ConversionResult:
        rate = get_exchange_rate(source_currency, target_currency)
        net = amount - self._fee
        if net <= 0:
            raise SettlementError("Amount too small to cover the conversion fee")

        await asyncio.sleep(PROVIDER_DELAY_SEC)
        result = ConversionResult(
            reference=f"conv_{new_id()[:12]}",
            amount_source=amount,
            amount_received=round(net * rate, 2),
            exchange_rate=rate,
            fee=self._fee,
        )
        logger.info(
            "Converted %.4f %s -> %.2f %s (rate %.2f, fee %.2f)",
            amount, source_currency, result["amount_received"], target_currency,
            rate, self._fee,
        )
        return result


class SimulatedWalletTransfer:
    """Stablecoin transfer that returns a fake transaction hash."""

    async def transfer(
        self, amount: float, currency: str, recipient: str, metadata: Optional[dict] = None
    ) -> TransferResult:
        if amount <= 0:
            raise SettlementError("Transfer amount must be positive")
        await asyncio.sleep(PROVIDER_DELAY_SEC)
        reference = "0x" + new_id().replace("-", "")
        logger.info("Transferred %.4f %s to %s (%s)", amount, currency, recipient, reference)
        return TransferResult(reference=reference, amount=amount, currency=currency)


class SimulatedPayoutProvider:
    """Fiat payout to the vendor's phone-linked account."""

    async def create_payout(
        self, amount: float, currency: str, destination: str, metadata: Optional[dict] = None
    ) -> PayoutResult:
        if not destination:
            raise SettlementError("Payout destination is required")
        await asyncio.sleep(PROVIDER_DELAY_SEC)
        reference = f"po_{new_id()[:12]}"
        logger.info("Payout %.2f %s to %s (%s)", amount, currency, destination, reference)
        return PayoutResult(
            reference=reference, amount=amount, currency=currency, destination=destination
        )
