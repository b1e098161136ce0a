"""Registration registry — one wallet per device, one device per wallet.

Register decisions, evaluated in order:

1. fingerprint bound to a different wallet  -> ``device-already-registered``
2. wallet bound to a different fingerprint  -> ``wallet-already-registered``
3. wallet bound to the same fingerprint     -> existing record, unchanged
4. otherwise                                -> new record in both indices

Wallets are compared case-insensitively; fingerprints exactly.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from pulsenet.core.errors import ConflictError, NotFoundError, StorageError
from pulsenet.core.storage.models import UserRegistration
from pulsenet.core.storage.registration_repository import (
    DuplicateRegistrationError,
    RegistrationRepository,
    RegistrationRepositoryError,
)

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _iso_from_ms(timestamp_ms: int) -> str:
    return (_EPOCH + timedelta(milliseconds=timestamp_ms)).isoformat()


class RegistrationRegistry:
    """Enforces the wallet <-> device fingerprint uniqueness invariant.

    Usage::

        registry = RegistrationRegistry(RegistrationRepository(db))
        record, created = registry.register(wallet, fingerprint)
        registry.verify(wallet, fingerprint)
    """

    def __init__(self, repository: RegistrationRepository) -> None:
        self._repo = repository
        self._lock = threading.Lock()

    def register(
        self,
        wallet_address: str,
        device_fingerprint: str,
        *,
        timestamp_ms: int | None = None,
    ) -> tuple[UserRegistration, bool]:
        """Bind a wallet to a device fingerprint.

        Returns:
            (registration, created). ``created`` is False on an idempotent
            re-registration of the same pair.

        Raises:
            ConflictError: ``device-already-registered`` or
                ``wallet-already-registered``.
            StorageError: If the registration could not be persisted.
        """
        with self._lock:
            try:
                by_device = self._repo.get_by_fingerprint(device_fingerprint)
                if by_device is not None and by_device.wallet_address.lower() != wallet_address.lower():
                    raise ConflictError("device-already-registered")

                by_wallet = self._repo.get_by_wallet(wallet_address)
                if by_wallet is not None:
                    if by_wallet.device_fingerprint != device_fingerprint:
                        raise ConflictError("wallet-already-registered")
                    logger.info("Wallet %s already registered with this device", wallet_address)
                    return by_wallet, False

                now = _iso_now()
                record = UserRegistration(
                    wallet_address=wallet_address,
                    device_fingerprint=device_fingerprint,
                    registration_id=str(uuid.uuid4()),
                    registered_at=_iso_from_ms(timestamp_ms) if timestamp_ms is not None else now,
                    verified=True,
                    last_activity=now,
                )
                self._repo.insert(record)
            except DuplicateRegistrationError as exc:
                # Only reachable if another writer bypassed this registry.
                raise StorageError(f"Registration constraint violated: {exc}") from exc
            except RegistrationRepositoryError as exc:
                raise StorageError(str(exc)) from exc

        logger.info("User registered: %s (%s)", wallet_address, record.registration_id)
        return record, True

    def verify(self, wallet_address: str, device_fingerprint: str) -> UserRegistration:
        """Confirm a wallet is still on its registered device.

        Raises:
            NotFoundError: Unknown wallet.
            ConflictError: ``fingerprint-mismatch``.
        """
        with self._lock:
            try:
                record = self._repo.get_by_wallet(wallet_address)
                if record is None:
                    raise NotFoundError(f"Wallet {wallet_address} is not registered")
                if record.device_fingerprint != device_fingerprint:
                    raise ConflictError("fingerprint-mismatch")

                record.last_activity = _iso_now()
                record.verified = True
                self._repo.mark_verified(wallet_address, record.last_activity)
            except RegistrationRepositoryError as exc:
                raise StorageError(str(exc)) from exc

        logger.info("User verified: %s", wallet_address)
        return record

    def get(self, wallet_address: str) -> UserRegistration:
        """Look up a registration.

        Raises:
            NotFoundError: Unknown wallet.
        """
        try:
            record = self._repo.get_by_wallet(wallet_address)
        except RegistrationRepositoryError as exc:
            raise StorageError(str(exc)) from exc
        if record is None:
            raise NotFoundError(f"Wallet {wallet_address} is not registered")
        return record

    def summary(self) -> dict[str, Any]:
        """Registration counts read from the live indices in one query."""
        with self._lock:
            try:
                counts = self._repo.counts()
            except RegistrationRepositoryError as exc:
                raise StorageError(str(exc)) from exc
        return {
            "totalUsers": counts["total_users"],
            "totalDevices": counts["total_devices"],
            "verifiedUsers": counts["verified_users"],
        }
