"""Tests for SubmissionRepository — append-only log with in-memory SQLite."""

from __future__ import annotations

import pytest

from pulsenet.core.storage.models import HealthSubmission, PlatformStats
from pulsenet.core.storage.submission_repository import (
    RepositoryError,
    SubmissionLog,
    SubmissionRepository,
)

WALLET = "0x" + "ab" * 20


def _make_submission(**overrides) -> HealthSubmission:
    defaults = dict(
        id="sub-1",
        user_address=WALLET,
        heart_rate=72,
        sleep_hours=7.5,
        steps=8000,
        timestamp=1_700_000_000_000,
        data_hash="0x" + "0" * 64,
        proof="zkp-00000000-nonce-verified",
    )
    defaults.update(overrides)
    return HealthSubmission(**defaults)


def _stats(total: int, contributors: int = 1) -> PlatformStats:
    return PlatformStats(
        total_submissions=total,
        unique_contributors=contributors,
        last_updated="2026-01-01T00:00:00+00:00",
    )


class TestAppend:
    def test_satisfies_protocol(self, submission_repository):
        assert isinstance(submission_repository, SubmissionLog)

    def test_append_and_load(self, submission_repository):
        submission = _make_submission()
        submission_repository.append(submission, _stats(1))
        loaded = submission_repository.load_all()
        assert loaded == [submission]

    def test_append_updates_stats(self, submission_repository):
        submission_repository.append(_make_submission(), _stats(1))
        stats = submission_repository.load_stats()
        assert stats.total_submissions == 1
        assert stats.unique_contributors == 1
        assert stats.last_updated == "2026-01-01T00:00:00+00:00"

    def test_metrics_are_encrypted_at_rest(self, submission_repository, pulse_db):
        submission_repository.append(_make_submission(heart_rate=123), _stats(1))
        row = pulse_db.connection.execute("SELECT * FROM submissions").fetchone()
        assert "123" not in row["metrics_enc"]
        assert row["user_address"] == WALLET
        assert row["user_address_key"] == WALLET.lower()

    def test_load_preserves_append_order(self, submission_repository):
        for i in range(5):
            submission_repository.append(_make_submission(id=f"sub-{i}", timestamp=5 - i), _stats(i + 1))
        ids = [s.id for s in submission_repository.load_all()]
        assert ids == [f"sub-{i}" for i in range(5)]

    def test_missing_id_rejected(self, submission_repository):
        with pytest.raises(RepositoryError, match="must have an id"):
            submission_repository.append(_make_submission(id=""), _stats(1))

    def test_duplicate_id_rolls_back_stats(self, submission_repository):
        submission_repository.append(_make_submission(), _stats(1))
        with pytest.raises(RepositoryError):
            submission_repository.append(_make_submission(), _stats(2))
        assert len(submission_repository.load_all()) == 1
        assert submission_repository.load_stats().total_submissions == 1

    def test_absent_metric_round_trips_as_none(self, submission_repository):
        submission_repository.append(_make_submission(steps=None), _stats(1))
        assert submission_repository.load_all()[0].steps is None

    def test_oversized_timestamp_rolls_back(self, submission_repository):
        with pytest.raises(RepositoryError, match="Failed to append"):
            submission_repository.append(_make_submission(timestamp=10**20), _stats(1))
        assert submission_repository.load_all() == []
        assert submission_repository.load_stats().total_submissions == 0


class TestPersistence:
    def test_survives_reopen(self, tmp_path, metrics_cipher):
        from pulsenet.core.storage.database import PulseDatabase

        path = str(tmp_path / "pulse.db")
        with PulseDatabase(path) as db:
            SubmissionRepository(db, metrics_cipher).append(_make_submission(), _stats(1))
        with PulseDatabase(path) as db:
            repo = SubmissionRepository(db, metrics_cipher)
            assert repo.load_all()[0].heart_rate == 72
            assert repo.load_stats().total_submissions == 1

    def test_wrong_key_on_load_raises_repository_error(self, tmp_path, metrics_cipher):
        from pulsenet.core.storage.database import PulseDatabase
        from pulsenet.core.storage.encryption import MetricsCipher

        path = str(tmp_path / "pulse.db")
        with PulseDatabase(path) as db:
            SubmissionRepository(db, metrics_cipher).append(_make_submission(), _stats(1))
        with PulseDatabase(path) as db:
            repo = SubmissionRepository(db, MetricsCipher(MetricsCipher.generate_key()))
            with pytest.raises(RepositoryError):
                repo.load_all()
