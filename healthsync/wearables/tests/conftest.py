"""Shared fixtures and sample builders for aggregation / scoring / manifest tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from healthsync.wearables.base import DateRange, RawSample
from healthsync.wearables.config_loader import CompletenessConfig, load_completeness_config
from healthsync.wearables.metrics import (
    CORE_METRICS,
    HK_ACTIVE_ENERGY,
    HK_HEART_RATE,
    HK_SLEEP_ANALYSIS,
    HK_STEP_COUNT,
)

UTC = timezone.utc

# Canonical test day (samples are UTC; aggregators under test use tz=UTC)
TEST_DAY = datetime(2026, 2, 23, tzinfo=UTC)
TEST_RANGE = DateRange(TEST_DAY - timedelta(days=30), TEST_DAY + timedelta(days=1))

#: 50 non-core metric keys for the "extras" component.
EXTRA_METRICS = [f"CustomMetric{i:02d}" for i in range(50)]


def make_sample(
    metric_id: str,
    value: float | str,
    start: datetime,
    minutes: int = 1,
    source: str | None = "Apple Watch",
) -> RawSample:
    """Build a RawSample spanning ``minutes`` from ``start``."""
    return RawSample(
        metric_id=metric_id,
        value=value,
        start=start,
        end=start + timedelta(minutes=minutes),
        source_tag=source,
    )


def make_night(wake: datetime) -> list[RawSample]:
    """One night ending at ``wake``: core 200, deep 90, rem 100, awake 30, inBed 480 minutes."""
    bed = wake - timedelta(minutes=480)
    samples = [make_sample(HK_SLEEP_ANALYSIS, "HKCategoryValueSleepAnalysisInBed", bed, 480)]
    cursor = bed
    for stage, minutes in (
        ("HKCategoryValueSleepAnalysisAsleepCore", 200),
        ("HKCategoryValueSleepAnalysisAwake", 30),
        ("HKCategoryValueSleepAnalysisAsleepDeep", 90),
        ("HKCategoryValueSleepAnalysisAsleepREM", 100),
    ):
        samples.append(make_sample(HK_SLEEP_ANALYSIS, stage, cursor, minutes))
        cursor += timedelta(minutes=minutes)
    return samples


def make_dataset(days: int, end: datetime = TEST_DAY, metrics: list[str] | None = None) -> list[RawSample]:
    """One reading per metric per day for ``days`` days ending on ``end``."""
    metric_ids = metrics if metrics is not None else list(CORE_METRICS)
    samples: list[RawSample] = []
    for offset in range(days):
        day = end - timedelta(days=offset)
        for metric_id in metric_ids:
            if metric_id == HK_SLEEP_ANALYSIS:
                samples.extend(make_night(day + timedelta(hours=7)))
            else:
                samples.append(make_sample(metric_id, 10.0 + offset, day + timedelta(hours=12)))
    return samples


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def completeness_config() -> CompletenessConfig:
    """Load the real completeness config for tests."""
    return load_completeness_config()


# ---------------------------------------------------------------------------
# Sample fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def step_samples() -> list[RawSample]:
    """Three step samples and one active energy sample on TEST_DAY."""
    return [
        make_sample(HK_STEP_COUNT, 1200, TEST_DAY + timedelta(hours=8)),
        make_sample(HK_STEP_COUNT, "800", TEST_DAY + timedelta(hours=12), source="iPhone"),
        make_sample(HK_STEP_COUNT, 500.0, TEST_DAY + timedelta(hours=18)),
        make_sample(HK_ACTIVE_ENERGY, 320.5, TEST_DAY + timedelta(hours=18)),
    ]


@pytest.fixture
def heart_rate_samples() -> list[RawSample]:
    return [
        make_sample(HK_HEART_RATE, 60, TEST_DAY + timedelta(hours=6)),
        make_sample(HK_HEART_RATE, 90, TEST_DAY + timedelta(hours=12)),
        make_sample(HK_HEART_RATE, 75, TEST_DAY + timedelta(hours=20)),
    ]


@pytest.fixture
def night_samples() -> list[RawSample]:
    return make_night(TEST_DAY + timedelta(hours=7))
