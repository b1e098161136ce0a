"""Tests for RegistrationRepository — wallet and fingerprint indices."""

from __future__ import annotations

import pytest

from pulsenet.core.storage.models import UserRegistration
from pulsenet.core.storage.registration_repository import DuplicateRegistrationError

WALLET = "0x" + "Ab" * 20
FINGERPRINT = "f" * 40


def _make_registration(**overrides) -> UserRegistration:
    defaults = dict(
        wallet_address=WALLET,
        device_fingerprint=FINGERPRINT,
        registration_id="reg-1",
        registered_at="2026-01-01T00:00:00+00:00",
        verified=True,
        last_activity="2026-01-01T00:00:00+00:00",
    )
    defaults.update(overrides)
    return UserRegistration(**defaults)


def test_insert_and_lookup_by_wallet(registration_repository):
    registration_repository.insert(_make_registration())
    record = registration_repository.get_by_wallet(WALLET.lower())
    assert record is not None
    assert record.wallet_address == WALLET
    assert record.device_fingerprint == FINGERPRINT


def test_lookup_by_fingerprint(registration_repository):
    registration_repository.insert(_make_registration())
    assert registration_repository.get_by_fingerprint(FINGERPRINT).registration_id == "reg-1"
    assert registration_repository.get_by_fingerprint("g" * 40) is None


def test_unknown_wallet_returns_none(registration_repository):
    assert registration_repository.get_by_wallet("0x" + "00" * 20) is None


def test_duplicate_wallet_rejected(registration_repository):
    registration_repository.insert(_make_registration())
    with pytest.raises(DuplicateRegistrationError):
        registration_repository.insert(
            _make_registration(registration_id="reg-2", wallet_address=WALLET.lower(), device_fingerprint="g" * 40)
        )


def test_duplicate_fingerprint_rejected(registration_repository):
    registration_repository.insert(_make_registration())
    with pytest.raises(DuplicateRegistrationError):
        registration_repository.insert(
            _make_registration(registration_id="reg-2", wallet_address="0x" + "cd" * 20)
        )


def test_mark_verified(registration_repository):
    registration_repository.insert(_make_registration(verified=False))
    registration_repository.mark_verified(WALLET, "2026-02-02T00:00:00+00:00")
    record = registration_repository.get_by_wallet(WALLET)
    assert record.verified is True
    assert record.last_activity == "2026-02-02T00:00:00+00:00"


def test_counts(registration_repository):
    assert registration_repository.counts() == {
        "total_users": 0, "total_devices": 0, "verified_users": 0,
    }
    registration_repository.insert(_make_registration())
    registration_repository.insert(
        _make_registration(
            registration_id="reg-2",
            wallet_address="0x" + "cd" * 20,
            device_fingerprint="g" * 40,
            verified=False,
        )
    )
    assert registration_repository.counts() == {
        "total_users": 2, "total_devices": 2, "verified_users": 1,
    }


def test_to_dict_omits_fingerprint():
    body = _make_registration().to_dict()
    assert "deviceFingerprint" not in body
    assert body["walletAddress"] == WALLET
