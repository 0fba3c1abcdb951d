"""Shared utilities used across the negotiator."""

import math
import re
import uuid
from datetime import datetime, timezone

_NUMBER_RE = re.compile(r"\d+")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("+91 542 240 1234")
        '+915422401234'
        >>> normalize_phone("(0542) 240-1234")
        '05422401234'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def extract_numbers(text: str) -> list[int]:
    """Return every run of digits in ``text`` as integers, in order.

    Separators are not interpreted, so "9,000" yields [9, 0] the same way a
    speech transcript would read it back.

        >>> extract_numbers("3 saaree 9000")
        [3, 9000]
    """
    return [int(token) for token in _NUMBER_RE.findall(text or "")]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
