"""Off-chain store — append-only submission set plus its derived stats cache.

Writers serialize on one lock around "load → append → recompute → persist".
Readers see an immutable view that is swapped in only after the log commits,
so a reader never sees a record without its matching stats (or the reverse),
and a failed write leaves the view exactly as it was.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any

from pulsenet.core.errors import StorageError
from pulsenet.core.storage.models import Commitment, HealthSubmission, PlatformStats
from pulsenet.core.storage.submission_repository import RepositoryError, SubmissionLog
from pulsenet.domains.health.domain_logic.aggregation import (
    build_snapshot,
    compute_platform_stats,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _StoreView:
    records: tuple[HealthSubmission, ...]
    stats: PlatformStats


class OffChainStore:
    """Owns the submission set and the PlatformStats cache.

    Usage::

        store = OffChainStore(SubmissionRepository(db, cipher))
        sid = store.append(submission, commitment)
        store.count_by_user("0xabc...")
        store.snapshot()
    """

    def __init__(self, log: SubmissionLog) -> None:
        self._log = log
        self._write_lock = threading.RLock()
        try:
            records = tuple(log.load_all())
            stats = log.load_stats()
        except RepositoryError as exc:
            raise StorageError(f"Failed to load submission log: {exc}") from exc

        if stats.total_submissions != len(records):
            # Stats are a cache; the log wins.
            logger.warning(
                "Stats snapshot out of date (%d cached vs %d logged); recomputing",
                stats.total_submissions,
                len(records),
            )
            stats = compute_platform_stats(records)
        self._view = _StoreView(records=records, stats=stats)
        logger.info("Off-chain store loaded %d submissions", len(records))

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append(self, submission: HealthSubmission, commitment: Commitment) -> str:
        """Persist a validated submission with its commitment.

        Returns:
            The newly assigned submission id.

        Raises:
            StorageError: If the log write fails. The view is unchanged.
        """
        record = dataclasses.replace(
            submission,
            id=self._new_id(),
            data_hash=commitment.data_hash,
            proof=commitment.proof,
        )

        with self._write_lock:
            records = self._view.records + (record,)
            stats = compute_platform_stats(records)
            try:
                self._log.append(record, stats)
            except RepositoryError as exc:
                logger.error("Failed to store submission %s: %s", record.id, exc)
                raise StorageError(str(exc)) from exc
            self._view = _StoreView(records=records, stats=stats)

        logger.info(
            "Stored submission %s (total=%d, contributors=%d)",
            record.id,
            stats.total_submissions,
            stats.unique_contributors,
        )
        return record.id

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_all(self) -> list[HealthSubmission]:
        return list(self._view.records)

    def count_by_user(self, address: str) -> int:
        """Number of submissions for ``address``, compared case-insensitively."""
        key = address.lower()
        return sum(1 for r in self._view.records if r.user_address.lower() == key)

    def stats(self) -> PlatformStats:
        return self._view.stats

    def snapshot(self) -> dict[str, Any]:
        """Full Aggregation Engine output over one consistent view."""
        view = self._view
        return build_snapshot(view.records, view.stats)
