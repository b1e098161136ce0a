"""Tests for the anonymized aggregation functions."""

from __future__ import annotations

from datetime import datetime, timezone

from pulsenet.core.storage.models import HealthSubmission, PlatformStats
from pulsenet.domains.health.domain_logic.aggregation import (
    build_snapshot,
    compute_average_metrics,
    compute_data_quality,
    compute_platform_stats,
    compute_temporal_distribution,
    count_unique_contributors,
    summarize_metric,
    sunday_weekday,
    week_number,
)

WALLET = "0x" + "a1" * 20


def _ms(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


def _sub(heart_rate=72, sleep_hours=7.5, steps=8000, address=WALLET, timestamp=None) -> HealthSubmission:
    return HealthSubmission(
        user_address=address,
        heart_rate=heart_rate,
        sleep_hours=sleep_hours,
        steps=steps,
        timestamp=timestamp if timestamp is not None else _ms(2026, 1, 4, 10, 30),
    )


class TestSummaries:
    def test_mean_median_range(self):
        assert summarize_metric([60, 70, 80]) == {
            "mean": 70, "median": 70, "range": {"min": 60, "max": 80},
        }

    def test_even_count_median(self):
        assert summarize_metric([60, 70, 80, 90])["median"] == 75

    def test_empty(self):
        assert summarize_metric([]) is None

    def test_averages_over_submissions(self):
        subs = [_sub(heart_rate=60), _sub(heart_rate=70), _sub(heart_rate=80)]
        averages = compute_average_metrics(subs)
        assert averages["heartRate"]["mean"] == 70
        assert averages["heartRate"]["range"] == {"min": 60, "max": 80}
        assert averages["steps"]["mean"] == 8000

    def test_zero_counts_as_absent(self):
        averages = compute_average_metrics([_sub(steps=0), _sub(steps=100)])
        assert averages["steps"]["mean"] == 100
        assert averages["steps"]["range"] == {"min": 100, "max": 100}

    def test_metric_zero_everywhere_is_omitted(self):
        averages = compute_average_metrics([_sub(sleep_hours=0), _sub(sleep_hours=0.0)])
        assert "sleepHours" not in averages

    def test_metric_absent_everywhere_is_omitted(self):
        averages = compute_average_metrics([_sub(steps=None), _sub(steps=None)])
        assert "steps" not in averages
        assert "heartRate" in averages

    def test_no_submissions(self):
        assert compute_average_metrics([]) is None


class TestQuality:
    def test_empty_is_perfect(self):
        assert compute_data_quality([]) == {"completeness": 100, "consistency": 100}

    def test_completeness(self):
        subs = [_sub(), _sub(), _sub(), _sub(steps=None)]
        quality = compute_data_quality(subs)
        assert quality["completeness"] == 75
        assert quality["consistency"] == 75

    def test_zero_reading_is_incomplete_but_consistent(self):
        subs = [_sub(), _sub(), _sub(), _sub(steps=0)]
        quality = compute_data_quality(subs)
        assert quality["completeness"] == 75
        assert quality["consistency"] == 100

    def test_consistency_flags_out_of_range(self):
        quality = compute_data_quality([_sub(), _sub(heart_rate=250)])
        assert quality["completeness"] == 100
        assert quality["consistency"] == 50


class TestTemporal:
    def test_sunday_is_zero(self):
        assert sunday_weekday(datetime(2026, 1, 4, tzinfo=timezone.utc)) == 0  # Sunday
        assert sunday_weekday(datetime(2026, 1, 10, tzinfo=timezone.utc)) == 6  # Saturday

    def test_week_number(self):
        # 2026-01-01 is a Thursday (weekday 4)
        assert week_number(datetime(2026, 1, 1, tzinfo=timezone.utc)) == 1
        assert week_number(datetime(2026, 1, 2, 12, tzinfo=timezone.utc)) == 1
        assert week_number(datetime(2026, 1, 4, 1, tzinfo=timezone.utc)) == 2

    def test_buckets_in_utc(self):
        subs = [
            _sub(timestamp=_ms(2026, 1, 4, 10, 30)),
            _sub(timestamp=_ms(2026, 1, 4, 10, 45)),
            _sub(timestamp=_ms(2026, 1, 5, 23, 0)),
        ]
        distribution = compute_temporal_distribution(subs)
        assert distribution["hourly"] == {10: 2, 23: 1}
        assert distribution["daily"] == {0: 2, 1: 1}
        assert sum(distribution["weekly"].values()) == 3

    def test_keys_sorted(self):
        subs = [_sub(timestamp=_ms(2026, 1, 4, h)) for h in (20, 3, 11)]
        assert list(compute_temporal_distribution(subs)["hourly"]) == [3, 11, 20]


class TestSnapshot:
    def test_unique_contributors_case_sensitive(self):
        subs = [_sub(address=WALLET), _sub(address=WALLET), _sub(address=WALLET.upper().replace("0X", "0x"))]
        assert count_unique_contributors(subs) == 2

    def test_platform_stats(self):
        stats = compute_platform_stats([_sub(), _sub()], now="2026-01-01T00:00:00+00:00")
        assert stats == PlatformStats(2, 1, "2026-01-01T00:00:00+00:00")

    def test_empty_snapshot(self):
        stats = PlatformStats(0, 0, "2026-01-01T00:00:00+00:00")
        snapshot = build_snapshot([], stats)
        assert snapshot == {
            "totalSubmissions": 0,
            "uniqueContributors": 0,
            "averageMetrics": None,
            "dataQuality": {"completeness": 100, "consistency": 100},
            "temporalDistribution": {},
            "lastUpdated": "2026-01-01T00:00:00+00:00",
        }

    def test_snapshot_totals_match_records(self):
        subs = [_sub(), _sub(address="0x" + "b2" * 20)]
        snapshot = build_snapshot(subs, compute_platform_stats(subs))
        assert snapshot["totalSubmissions"] == 2
        assert snapshot["uniqueContributors"] == 2
        assert set(snapshot["temporalDistribution"]) == {"hourly", "daily", "weekly"}
