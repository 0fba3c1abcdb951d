"""
Centralized configuration with environment variable overrides.

Negotiation policy numbers, voice-dialog parameters, reconciler thresholds,
simulation timings and provider credentials all live here. Nothing is
hardcoded in the state machine, renderer or coordinators.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from negotiator.logging_context import CallContextFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class NegotiationConfig:
    """Dialog policy for the vendor negotiation call."""

    max_attempts: int = _safe_int("NEGOTIATION_MAX_ATTEMPTS", "3")
    default_quantity: int = _safe_int("DEFAULT_QUANTITY", "5")
    default_initial_price: int = _safe_int("DEFAULT_INITIAL_PRICE", "8000")
    fallback_vendor_increment: int = _safe_int("FALLBACK_VENDOR_INCREMENT", "2000")
    closing_concession: int = _safe_int("CLOSING_CONCESSION", "500")


@dataclass(frozen=True)
class VoiceConfig:
    """Gather and speech settings for the voice-dialog documents."""

    gather_timeout_sec: int = _safe_int("GATHER_TIMEOUT", "5")
    gather_num_digits: int = _safe_int("GATHER_NUM_DIGITS", "1")
    say_voice: str = os.getenv("SAY_VOICE", "Polly.Aditi")
    language: str = os.getenv("VOICE_LANGUAGE", "hi-IN")


@dataclass(frozen=True)
class TelephonyConfig:
    """Telephony provider credentials and callback addressing."""

    account_sid: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    auth_token: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    from_number: str = os.getenv("TWILIO_PHONE_NUMBER", "")
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
    default_vendor_phone: str = os.getenv("DEFAULT_VENDOR_PHONE", "+16179466711")

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


@dataclass(frozen=True)
class ReconcilerConfig:
    """Thresholds for classifying an ambiguous 'completed' call."""

    min_call_seconds: int = _safe_int("MIN_CALL_SECONDS", "10")
    min_unpriced_call_seconds: int = _safe_int("MIN_UNPRICED_CALL_SECONDS", "60")


@dataclass(frozen=True)
class SimulationConfig:
    """Timings for simulated call progression when no live channel exists."""

    in_progress_delay_sec: float = _safe_float("SIM_IN_PROGRESS_DELAY", "2.0")
    negotiating_delay_sec: float = _safe_float("SIM_NEGOTIATING_DELAY", "2.0")
    completion_delay_sec: float = _safe_float("SIM_COMPLETION_DELAY", "3.0")
    call_duration_sec: int = _safe_int("SIM_CALL_DURATION", "45")
    price_min: int = _safe_int("SIM_PRICE_MIN", "8000")
    price_max: int = _safe_int("SIM_PRICE_MAX", "13000")


@dataclass(frozen=True)
class PaymentConfig:
    """Settlement currencies and fees."""

    source_currency: str = os.getenv("PAYMENT_SOURCE_CURRENCY", "USDC")
    payout_currency: str = os.getenv("PAYMENT_PAYOUT_CURRENCY", "INR")
    conversion_fee: float = _safe_float("CONVERSION_FEE", "1.0")
    wallet_address: str = os.getenv("SETTLEMENT_WALLET_ADDRESS", "0x1234567890abcdef")


@dataclass(frozen=True)
class JourneyConfig:
    """Shopping journey defaults used for vendor discovery."""

    product_query: str = os.getenv("PRODUCT_QUERY", "Banarasi saree")
    default_location: str = os.getenv("DEFAULT_LOCATION", "Varanasi")
    reference_lat: float = _safe_float("REFERENCE_LAT", "25.3176")
    reference_lng: float = _safe_float("REFERENCE_LNG", "82.9739")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    negotiation: NegotiationConfig = field(default_factory=NegotiationConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    telephony: TelephonyConfig = field(default_factory=TelephonyConfig)
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    journey: JourneyConfig = field(default_factory=JourneyConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "vendor-call-negotiator")
    server_host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    server_port: int = _safe_int("SERVER_PORT", "8000")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.negotiation.max_attempts < 1:
        raise ValueError(
            f"NEGOTIATION_MAX_ATTEMPTS must be >= 1, got {config.negotiation.max_attempts}"
        )
    if config.negotiation.default_quantity < 1:
        raise ValueError(
            f"DEFAULT_QUANTITY must be >= 1, got {config.negotiation.default_quantity}"
        )
    if config.negotiation.default_initial_price <= 0:
        raise ValueError(
            "DEFAULT_INITIAL_PRICE must be > 0, "
            f"got {config.negotiation.default_initial_price}"
        )
    for name, value in [
        ("FALLBACK_VENDOR_INCREMENT", config.negotiation.fallback_vendor_increment),
        ("CLOSING_CONCESSION", config.negotiation.closing_concession),
    ]:
        if value < 0:
            raise ValueError(f"{name} must be >= 0, got {value}")

    if config.voice.gather_timeout_sec < 1:
        raise ValueError(
            f"GATHER_TIMEOUT must be >= 1, got {config.voice.gather_timeout_sec}"
        )
    if config.voice.gather_num_digits < 1:
        raise ValueError(
            f"GATHER_NUM_DIGITS must be >= 1, got {config.voice.gather_num_digits}"
        )

    if config.reconciler.min_call_seconds < 0:
        raise ValueError(
            f"MIN_CALL_SECONDS must be >= 0, got {config.reconciler.min_call_seconds}"
        )
    if config.reconciler.min_unpriced_call_seconds < config.reconciler.min_call_seconds:
        raise ValueError(
            "MIN_UNPRICED_CALL_SECONDS must be >= MIN_CALL_SECONDS, "
            f"got {config.reconciler.min_unpriced_call_seconds}"
        )

    for delay_name, delay in [
        ("SIM_IN_PROGRESS_DELAY", config.simulation.in_progress_delay_sec),
        ("SIM_NEGOTIATING_DELAY", config.simulation.negotiating_delay_sec),
        ("SIM_COMPLETION_DELAY", config.simulation.completion_delay_sec),
    ]:
        if delay < 0:
            raise ValueError(f"{delay_name} must be >= 0, got {delay}")
    if config.simulation.price_min >= config.simulation.price_max:
        raise ValueError(
            "SIM_PRICE_MIN must be < SIM_PRICE_MAX, "
            f"got {config.simulation.price_min} >= {config.simulation.price_max}"
        )

    if not 0 < config.server_port < 65536:
        raise ValueError(f"SERVER_PORT must be 1-65535, got {config.server_port}")

    if config.payment.conversion_fee < 0:
        raise ValueError(
            f"CONVERSION_FEE must be >= 0, got {config.payment.conversion_fee}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(call_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CallContextFilter) for f in handler.filters):
            handler.addFilter(CallContextFilter())
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
