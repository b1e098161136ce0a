"""Submission log repository — append-only persistence for health submissions.

The repository mediates between :class:`HealthSubmission` records and the
SQLite database, sealing raw metrics with :class:`MetricsCipher`. The
submission log and the stats snapshot live in separate tables and are loaded
independently.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Protocol, runtime_checkable

from pulsenet.core.storage.database import PulseDatabase
from pulsenet.core.storage.encryption import EncryptionError, MetricsCipher
from pulsenet.core.storage.models import HealthSubmission, PlatformStats

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when the submission log cannot be written or read."""


@runtime_checkable
class SubmissionLog(Protocol):
    """Persistence contract for the off-chain store.

    ``append`` must write the record and the new stats snapshot as one unit:
    either both become visible or neither does.
    """

    def append(self, submission: HealthSubmission, stats: PlatformStats) -> None:
        ...

    def load_all(self) -> list[HealthSubmission]:
        ...

    def load_stats(self) -> PlatformStats:
        ...


class SubmissionRepository:
    """SQLite-backed :class:`SubmissionLog`.

    Usage::

        db = PulseDatabase(":memory:")
        db.initialize()
        repo = SubmissionRepository(db, MetricsCipher(key="..."))

        repo.append(submission, stats)
        records = repo.load_all()
    """

    def __init__(self, database: PulseDatabase, cipher: MetricsCipher) -> None:
        self._db = database
        self._cipher = cipher

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append(self, submission: HealthSubmission, stats: PlatformStats) -> None:
        """Insert one record and overwrite the stats snapshot in one transaction.

        Raises:
            RepositoryError: If either write fails. Nothing is committed.
        """
        if not submission.id:
            raise RepositoryError("Submission must have an id before it is appended")

        conn = self._db.connection
        try:
            metrics_enc = self._cipher.seal(submission.metrics())
            conn.execute(
                """INSERT INTO submissions (
                    id, user_address, user_address_key, timestamp,
                    data_hash, proof, metrics_enc
                ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    submission.id,
                    submission.user_address,
                    submission.user_address.lower(),
                    submission.timestamp,
                    submission.data_hash,
                    submission.proof,
                    metrics_enc,
                ),
            )
            conn.execute(
                """UPDATE platform_stats
                   SET total_submissions = ?, unique_contributors = ?, last_updated = ?
                   WHERE id = 1""",
                (stats.total_submissions, stats.unique_contributors, stats.last_updated),
            )
            conn.commit()
        except (sqlite3.Error, EncryptionError, OverflowError) as exc:
            conn.rollback()
            raise RepositoryError(f"Failed to append submission {submission.id}: {exc}") from exc

        logger.debug("Appended submission %s", submission.id)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_all(self) -> list[HealthSubmission]:
        """Return every submission in append order, metrics decrypted."""
        try:
            rows = self._db.connection.execute(
                "SELECT * FROM submissions ORDER BY seq ASC"
            ).fetchall()
            return [self._row_to_submission(row) for row in rows]
        except (sqlite3.Error, EncryptionError) as exc:
            raise RepositoryError(f"Failed to load submissions: {exc}") from exc

    def load_stats(self) -> PlatformStats:
        """Return the persisted stats snapshot."""
        try:
            row = self._db.connection.execute(
                "SELECT total_submissions, unique_contributors, last_updated "
                "FROM platform_stats WHERE id = 1"
            ).fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to load stats: {exc}") from exc
        if row is None:
            raise RepositoryError("Stats snapshot row is missing")
        return PlatformStats(
            total_submissions=row[0],
            unique_contributors=row[1],
            last_updated=row[2],
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_submission(self, row: Any) -> HealthSubmission:
        metrics = self._cipher.open(row["metrics_enc"])
        return HealthSubmission(
            id=row["id"],
            user_address=row["user_address"],
            heart_rate=metrics.get("heartRate"),
            sleep_hours=metrics.get("sleepHours"),
            steps=metrics.get("steps"),
            timestamp=row["timestamp"],
            data_hash=row["data_hash"],
            proof=row["proof"],
        )
