"""Tests for submission and registration validation."""

from __future__ import annotations

import pytest

from pulsenet.core.errors import ValidationError
from pulsenet.domains.health.domain_logic.validator import (
    MAX_TIMESTAMP_MS,
    in_range,
    is_valid_address,
    validate_registration,
    validate_submission,
    validate_timestamp,
)

WALLET = "0x" + "a1" * 20


def _payload(**overrides):
    payload = {
        "userAddress": WALLET,
        "heartRate": 72,
        "sleepHours": 7.5,
        "steps": 8000,
        "timestamp": 1_700_000_000_000,
    }
    payload.update(overrides)
    return payload


class TestAddress:
    @pytest.mark.parametrize("address", [WALLET, "0x" + "AbCdEf0123" * 4])
    def test_valid(self, address):
        assert is_valid_address(address)

    @pytest.mark.parametrize(
        "address",
        ["", None, "0x123", WALLET[2:], "0X" + "a1" * 20, "0x" + "g1" * 20, WALLET + "00"],
    )
    def test_invalid(self, address):
        assert not is_valid_address(address)


class TestSubmission:
    def test_valid_payload(self):
        submission = validate_submission(_payload())
        assert submission.user_address == WALLET
        assert submission.heart_rate == 72
        assert submission.timestamp == 1_700_000_000_000

    def test_missing_timestamp_defaults_to_now(self):
        payload = _payload()
        del payload["timestamp"]
        assert validate_submission(payload).timestamp > 1_700_000_000_000

    @pytest.mark.parametrize(
        "field,value",
        [
            ("heartRate", 30), ("heartRate", 220),
            ("sleepHours", 0), ("sleepHours", 24),
            ("steps", 0), ("steps", 100_000),
        ],
    )
    def test_range_bounds_inclusive(self, field, value):
        validate_submission(_payload(**{field: value}))

    @pytest.mark.parametrize(
        "field,value",
        [
            ("heartRate", 29), ("heartRate", 221), ("heartRate", "72"), ("heartRate", None),
            ("sleepHours", -0.1), ("sleepHours", 24.5),
            ("steps", -1), ("steps", 100_001), ("steps", True),
            ("heartRate", float("nan")),
        ],
    )
    def test_out_of_range_names_field(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_submission(_payload(**{field: value}))
        assert exc_info.value.field == field

    def test_bad_address(self):
        with pytest.raises(ValidationError, match="Invalid user address") as exc_info:
            validate_submission(_payload(userAddress="0x123"))
        assert exc_info.value.field == "userAddress"
        assert exc_info.value.status_code == 400

    def test_address_checked_before_metrics(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_submission(_payload(userAddress="", heartRate=999))
        assert exc_info.value.field == "userAddress"

    def test_non_mapping_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_submission([1, 2, 3])
        assert exc_info.value.field == "body"

    def test_in_range_helper(self):
        assert in_range("steps", 500)
        assert not in_range("steps", None)


class TestTimestamp:
    def test_none_passes_through(self):
        assert validate_timestamp(None) is None

    def test_integral_float_becomes_int(self):
        assert validate_timestamp(1000.0) == 1000

    @pytest.mark.parametrize("value", [-1, 1.5, "1000", True])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_timestamp(value)

    def test_latest_datetime_accepted(self):
        assert validate_timestamp(MAX_TIMESTAMP_MS) == MAX_TIMESTAMP_MS

    @pytest.mark.parametrize("value", [MAX_TIMESTAMP_MS + 1, 10**16, 10**20])
    def test_beyond_year_9999_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_timestamp(value)
        assert exc_info.value.field == "timestamp"

    def test_submission_far_future_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_submission(_payload(timestamp=10**16))
        assert exc_info.value.field == "timestamp"


class TestRegistration:
    def test_valid(self):
        wallet, fingerprint, ts = validate_registration(
            {"walletAddress": WALLET, "deviceFingerprint": "x" * 32, "timestamp": 5}
        )
        assert (wallet, fingerprint, ts) == (WALLET, "x" * 32, 5)

    def test_short_fingerprint(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_registration({"walletAddress": WALLET, "deviceFingerprint": "x" * 31})
        assert exc_info.value.field == "deviceFingerprint"

    def test_custom_min_length(self):
        validate_registration(
            {"walletAddress": WALLET, "deviceFingerprint": "x" * 8}, min_fingerprint_length=8
        )

    def test_bad_wallet(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_registration({"walletAddress": "nope", "deviceFingerprint": "x" * 32})
        assert exc_info.value.field == "walletAddress"

    def test_timestamp_ignored_when_not_allowed(self):
        _, _, ts = validate_registration(
            {"walletAddress": WALLET, "deviceFingerprint": "x" * 32, "timestamp": "junk"},
            allow_timestamp=False,
        )
        assert ts is None
