"""Registration repository — wallet and fingerprint lookups over one table.

Each row carries both the wallet key and the device fingerprint, each under
a UNIQUE constraint, so the wallet index and the fingerprint index are a
single structure and cannot drift apart.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from pulsenet.core.storage.database import PulseDatabase
from pulsenet.core.storage.models import UserRegistration

logger = logging.getLogger(__name__)


class RegistrationRepositoryError(Exception):
    """Raised when registration rows cannot be written or read."""


class DuplicateRegistrationError(RegistrationRepositoryError):
    """An insert hit the wallet or fingerprint UNIQUE constraint."""


class RegistrationRepository:
    """CRUD for :class:`UserRegistration` rows.

    Usage::

        repo = RegistrationRepository(db)
        repo.insert(registration)
        repo.get_by_wallet("0xabc...")
    """

    def __init__(self, database: PulseDatabase) -> None:
        self._db = database

    def get_by_wallet(self, wallet_address: str) -> UserRegistration | None:
        row = self._fetch_one(
            "SELECT * FROM registrations WHERE wallet_key = ?",
            (wallet_address.lower(),),
        )
        return self._row_to_registration(row) if row is not None else None

    def get_by_fingerprint(self, device_fingerprint: str) -> UserRegistration | None:
        row = self._fetch_one(
            "SELECT * FROM registrations WHERE device_fingerprint = ?",
            (device_fingerprint,),
        )
        return self._row_to_registration(row) if row is not None else None

    def insert(self, registration: UserRegistration) -> None:
        """Insert a new binding into both indices at once.

        Raises:
            DuplicateRegistrationError: If the wallet or fingerprint is taken.
            RegistrationRepositoryError: On any other database failure.
        """
        conn = self._db.connection
        try:
            conn.execute(
                """INSERT INTO registrations (
                    registration_id, wallet_address, wallet_key, device_fingerprint,
                    registered_at, verified, last_activity
                ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    registration.registration_id,
                    registration.wallet_address,
                    registration.wallet_address.lower(),
                    registration.device_fingerprint,
                    registration.registered_at,
                    int(registration.verified),
                    registration.last_activity,
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise DuplicateRegistrationError(str(exc)) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise RegistrationRepositoryError(f"Failed to insert registration: {exc}") from exc

    def mark_verified(self, wallet_address: str, last_activity: str) -> None:
        """Set ``verified`` and bump ``last_activity`` for a wallet."""
        conn = self._db.connection
        try:
            conn.execute(
                "UPDATE registrations SET verified = 1, last_activity = ? WHERE wallet_key = ?",
                (last_activity, wallet_address.lower()),
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise RegistrationRepositoryError(f"Failed to update registration: {exc}") from exc

    def counts(self) -> dict[str, int]:
        """Return wallet, fingerprint, and verified counts from one query."""
        row = self._fetch_one(
            """SELECT COUNT(wallet_key),
                      COUNT(DISTINCT device_fingerprint),
                      COALESCE(SUM(verified), 0)
               FROM registrations""",
            (),
        )
        return {
            "total_users": row[0],
            "total_devices": row[1],
            "verified_users": row[2],
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> Any:
        try:
            return self._db.connection.execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise RegistrationRepositoryError(f"Registration query failed: {exc}") from exc

    @staticmethod
    def _row_to_registration(row: Any) -> UserRegistration:
        return UserRegistration(
            wallet_address=row["wallet_address"],
            device_fingerprint=row["device_fingerprint"],
            registration_id=row["registration_id"],
            registered_at=row["registered_at"],
            verified=bool(row["verified"]),
            last_activity=row["last_activity"],
        )
