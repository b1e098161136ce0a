"""Submission and registration validation.

The single source of the schema and physiological range rules. The tool
layer, the HTTP routes, the commitment scheme, and the aggregation quality
score all call into this module.
"""

from __future__ import annotations

import math
import re
import time
from collections.abc import Mapping
from typing import Any

from pulsenet.core.errors import ValidationError
from pulsenet.core.storage.models import HealthSubmission

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

# Inclusive physiological ranges, keyed by wire field name.
METRIC_RANGES: dict[str, tuple[float, float]] = {
    "heartRate": (30, 220),
    "sleepHours": (0, 24),
    "steps": (0, 100_000),
}

_METRIC_LABELS = {
    "heartRate": "heart rate (must be 30-220 bpm)",
    "sleepHours": "sleep hours (must be 0-24 hours)",
    "steps": "steps count (must be 0-100000)",
}

DEFAULT_MIN_FINGERPRINT_LENGTH = 32

# Latest instant a datetime can hold: 9999-12-31T23:59:59.999Z.
MAX_TIMESTAMP_MS = 253_402_300_799_999


def now_ms() -> int:
    return int(time.time() * 1000)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def is_valid_address(address: Any) -> bool:
    return isinstance(address, str) and ADDRESS_PATTERN.match(address) is not None


def in_range(field: str, value: Any) -> bool:
    """True if ``value`` is a number inside the range for ``field``."""
    if not _is_number(value):
        return False
    low, high = METRIC_RANGES[field]
    return low <= value <= high


def validate_address(address: Any, field: str = "address") -> str:
    if not is_valid_address(address):
        raise ValidationError(field, "Invalid Ethereum address")
    return address


def validate_timestamp(value: Any, field: str = "timestamp") -> int | None:
    """Return ``value`` as int ms, ``None`` if absent, or raise."""
    if value is None:
        return None
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(field, f'"{field}" must be a non-negative integer')
    if value > MAX_TIMESTAMP_MS:
        raise ValidationError(field, f'"{field}" must not be later than 9999-12-31T23:59:59.999Z')
    return value


def validate_submission(payload: Mapping[str, Any]) -> HealthSubmission:
    """Check a candidate submission and return it normalized.

    A missing ``timestamp`` is defaulted to the current time in ms.

    Raises:
        ValidationError: naming the first offending field.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("body", "Submission must be a JSON object")

    address = payload.get("userAddress")
    if not address or not is_valid_address(address):
        raise ValidationError("userAddress", "Invalid user address")

    for field in METRIC_RANGES:
        if not in_range(field, payload.get(field)):
            raise ValidationError(field, f"Invalid {_METRIC_LABELS[field]}")

    timestamp = validate_timestamp(payload.get("timestamp"))

    return HealthSubmission(
        user_address=address,
        heart_rate=payload["heartRate"],
        sleep_hours=payload["sleepHours"],
        steps=payload["steps"],
        timestamp=timestamp if timestamp is not None else now_ms(),
    )


def validate_fingerprint(
    fingerprint: Any, *, min_length: int = DEFAULT_MIN_FINGERPRINT_LENGTH
) -> str:
    if not isinstance(fingerprint, str) or len(fingerprint) < min_length:
        raise ValidationError(
            "deviceFingerprint",
            f'"deviceFingerprint" must be a string of at least {min_length} characters',
        )
    return fingerprint


def validate_registration(
    payload: Mapping[str, Any],
    *,
    min_fingerprint_length: int = DEFAULT_MIN_FINGERPRINT_LENGTH,
    allow_timestamp: bool = True,
) -> tuple[str, str, int | None]:
    """Validate a register/verify body.

    Returns: (wallet_address, device_fingerprint, timestamp_or_none)
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("body", "Request body must be a JSON object")
    wallet = validate_address(payload.get("walletAddress"), field="walletAddress")
    fingerprint = validate_fingerprint(
        payload.get("deviceFingerprint"), min_length=min_fingerprint_length
    )
    timestamp = validate_timestamp(payload.get("timestamp")) if allow_timestamp else None
    return wallet, fingerprint, timestamp
