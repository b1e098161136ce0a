"""Anonymized population statistics over the full submission log.

Everything here is a pure function of a list of submissions. The off-chain
store calls :func:`compute_platform_stats` on every append and
:func:`build_snapshot` on every stats read.
"""

from __future__ import annotations

import math
import statistics
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from pulsenet.core.storage.models import HealthSubmission, PlatformStats
from pulsenet.domains.health.domain_logic.validator import METRIC_RANGES, in_range

_METRIC_ATTRS = {
    "heartRate": "heart_rate",
    "sleepHours": "sleep_hours",
    "steps": "steps",
}


# ---------------------------------------------------------------------------
# Central tendency
# ---------------------------------------------------------------------------

def summarize_metric(values: Sequence[float]) -> dict[str, Any] | None:
    """Mean, median, and range of a metric, or None if there are no values."""
    if not values:
        return None
    return {
        "mean": statistics.mean(values),
        "median": statistics.median(values),
        "range": {"min": min(values), "max": max(values)},
    }


def _is_present(value: float | None) -> bool:
    """A recorded 0 counts as absent, like a missing reading."""
    return value is not None and value != 0


def metric_values(submissions: Sequence[HealthSubmission], field: str) -> list[float]:
    attr = _METRIC_ATTRS[field]
    return [v for v in (getattr(s, attr) for s in submissions) if _is_present(v)]


def compute_average_metrics(
    submissions: Sequence[HealthSubmission],
) -> dict[str, Any] | None:
    """Per-metric summaries; metrics absent from every record are omitted."""
    if not submissions:
        return None
    averages: dict[str, Any] = {}
    for field in _METRIC_ATTRS:
        summary = summarize_metric(metric_values(submissions, field))
        if summary is not None:
            averages[field] = summary
    return averages


# ---------------------------------------------------------------------------
# Quality
# ---------------------------------------------------------------------------

def compute_data_quality(submissions: Sequence[HealthSubmission]) -> dict[str, float]:
    """Completeness and consistency as percentages (100 for an empty log)."""
    if not submissions:
        return {"completeness": 100, "consistency": 100}

    complete = 0
    consistent = 0
    for sub in submissions:
        metrics = sub.metrics()
        if all(_is_present(v) for v in metrics.values()):
            complete += 1
        if all(in_range(field, metrics[field]) for field in METRIC_RANGES):
            consistent += 1

    total = len(submissions)
    return {
        "completeness": complete / total * 100,
        "consistency": consistent / total * 100,
    }


# ---------------------------------------------------------------------------
# Temporal distribution (UTC)
# ---------------------------------------------------------------------------

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_datetime(timestamp_ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=timestamp_ms)


def sunday_weekday(dt: datetime) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


def week_number(dt: datetime) -> int:
    """``ceil((days_since_jan1 + jan1_weekday + 1) / 7)``.

    ``days_since_jan1`` is fractional (includes the time of day).
    """
    start = datetime(dt.year, 1, 1, tzinfo=timezone.utc)
    days = (dt - start).total_seconds() / 86400
    return math.ceil((days + sunday_weekday(start) + 1) / 7)


def compute_temporal_distribution(
    submissions: Sequence[HealthSubmission],
) -> dict[str, dict[int, int]]:
    hourly: Counter[int] = Counter()
    daily: Counter[int] = Counter()
    weekly: Counter[int] = Counter()

    for sub in submissions:
        dt = _to_datetime(sub.timestamp)
        hourly[dt.hour] += 1
        daily[sunday_weekday(dt)] += 1
        weekly[week_number(dt)] += 1

    return {
        "hourly": dict(sorted(hourly.items())),
        "daily": dict(sorted(daily.items())),
        "weekly": dict(sorted(weekly.items())),
    }


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def count_unique_contributors(submissions: Sequence[HealthSubmission]) -> int:
    """Distinct addresses exactly as stored (case-sensitive)."""
    return len({s.user_address for s in submissions})


def compute_platform_stats(
    submissions: Sequence[HealthSubmission], *, now: str | None = None
) -> PlatformStats:
    return PlatformStats(
        total_submissions=len(submissions),
        unique_contributors=count_unique_contributors(submissions),
        last_updated=now or datetime.now(timezone.utc).isoformat(),
    )


def build_snapshot(
    submissions: Sequence[HealthSubmission], stats: PlatformStats
) -> dict[str, Any]:
    """Full anonymized statistics payload served to data buyers."""
    if not submissions:
        return {
            "totalSubmissions": 0,
            "uniqueContributors": 0,
            "averageMetrics": None,
            "dataQuality": compute_data_quality(submissions),
            "temporalDistribution": {},
            "lastUpdated": stats.last_updated,
        }

    return {
        "totalSubmissions": len(submissions),
        "uniqueContributors": count_unique_contributors(submissions),
        "averageMetrics": compute_average_metrics(submissions),
        "dataQuality": compute_data_quality(submissions),
        "temporalDistribution": compute_temporal_distribution(submissions),
        "lastUpdated": stats.last_updated,
    }
