"""Tests for the metric catalog and the canonical data models."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from healthsync.wearables.base import (
    AdditiveSummary,
    CompletenessResult,
    CompletenessTier,
    DailySummary,
    DateRange,
    RawSample,
    SampledSummary,
    SleepStage,
    SleepSummary,
)
from healthsync.wearables.metrics import (
    CORE_METRICS,
    HK_HEART_RATE,
    HK_SLEEP_ANALYSIS,
    HK_SPO2,
    HK_STEP_COUNT,
    HK_VO2_MAX,
    HK_WORKOUT,
    classify_source,
    is_additive_metric,
    is_core_metric,
    is_sleep_metric,
    normalize_metric_key,
)

UTC = timezone.utc
T0 = datetime(2026, 2, 23, 8, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Metric catalog
# ---------------------------------------------------------------------------


class TestNormalizeMetricKey:
    @pytest.mark.parametrize(
        "metric_id, expected",
        [
            (HK_STEP_COUNT, "StepCount"),
            (HK_SLEEP_ANALYSIS, "SleepAnalysis"),
            (HK_WORKOUT, "workout"),
            ("StepCount", "StepCount"),
        ],
    )
    def test_prefix_stripped(self, metric_id: str, expected: str) -> None:
        assert normalize_metric_key(metric_id) == expected

    def test_idempotent(self) -> None:
        once = normalize_metric_key(HK_HEART_RATE)
        assert normalize_metric_key(once) == once


class TestMetricClassification:
    def test_nine_core_metrics(self) -> None:
        assert len(CORE_METRICS) == 9
        assert HK_VO2_MAX in CORE_METRICS
        assert HK_SPO2 not in CORE_METRICS

    def test_core_accepts_raw_and_normalized(self) -> None:
        assert is_core_metric(HK_HEART_RATE)
        assert is_core_metric("HeartRate")
        assert not is_core_metric(HK_SPO2)

    def test_additive(self) -> None:
        assert is_additive_metric(HK_STEP_COUNT)
        assert is_additive_metric("DietaryWater")
        assert not is_additive_metric(HK_HEART_RATE)

    def test_sleep(self) -> None:
        assert is_sleep_metric(HK_SLEEP_ANALYSIS)
        assert is_sleep_metric("SleepAnalysis")
        assert not is_sleep_metric(HK_STEP_COUNT)

    @pytest.mark.parametrize(
        "tag, expected",
        [
            ("Sam's Apple Watch", "watch"),
            ("iPhone 15 Pro", "phone"),
            ("Phone", "phone"),
            ("Oura", "other"),
            (None, "other"),
        ],
    )
    def test_classify_source(self, tag: str | None, expected: str) -> None:
        assert classify_source(tag) == expected


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


class TestRawSample:
    def test_numeric_value(self) -> None:
        assert RawSample(HK_HEART_RATE, "72", T0, T0).numeric_value == 72.0
        assert RawSample(HK_HEART_RATE, 61, T0, T0).numeric_value == 61.0
        assert RawSample(HK_WORKOUT, "Running", T0, T0).numeric_value is None
        assert RawSample(HK_HEART_RATE, True, T0, T0).numeric_value is None

    def test_duration_minutes(self) -> None:
        assert RawSample(HK_SLEEP_ANALYSIS, "core", T0, T0 + timedelta(seconds=150)).duration_minutes == 2
        assert RawSample(HK_SLEEP_ANALYSIS, "core", T0, T0 - timedelta(hours=1)).duration_minutes == 0


class TestDateRange:
    def test_calendar_days(self) -> None:
        window = DateRange(datetime(2026, 2, 1, 23, 0, tzinfo=UTC), datetime(2026, 2, 24, 1, 0, tzinfo=UTC))
        assert window.calendar_days == 23
        assert window.start_day == date(2026, 2, 1)
        assert window.end_day == date(2026, 2, 24)

    def test_inverted_range_has_no_days(self) -> None:
        assert DateRange(T0, T0 - timedelta(days=3)).calendar_days == 0

    def test_contains_is_inclusive(self) -> None:
        window = DateRange(T0, T0 + timedelta(hours=1))
        assert window.contains(T0)
        assert window.contains(T0 + timedelta(hours=1))
        assert not window.contains(T0 + timedelta(hours=1, seconds=1))


class TestSleepStage:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("inBed", SleepStage.IN_BED),
            ("REM", SleepStage.REM),
            ("HKCategoryValueSleepAnalysisAsleepREM", SleepStage.REM),
            ("HKCategoryValueSleepAnalysisAsleepCore", SleepStage.CORE),
            ("HKCategoryValueSleepAnalysisAsleepUnspecified", SleepStage.ASLEEP),
            ("HKCategoryValueSleepAnalysisAwake", SleepStage.AWAKE),
            (0, SleepStage.IN_BED),
            (4, SleepStage.DEEP),
            (5.0, SleepStage.REM),
            ("3", SleepStage.CORE),
            (2.5, SleepStage.UNKNOWN),
            (9, SleepStage.UNKNOWN),
            ("zzz", SleepStage.UNKNOWN),
            (None, SleepStage.UNKNOWN),
            (True, SleepStage.UNKNOWN),
        ],
    )
    def test_parse(self, value: object, expected: SleepStage) -> None:
        assert SleepStage.parse(value) is expected

    def test_asleep_and_unknown_bucket_as_core(self) -> None:
        assert SleepStage.ASLEEP.bucket is SleepStage.CORE
        assert SleepStage.UNKNOWN.bucket is SleepStage.CORE
        assert SleepStage.DEEP.bucket is SleepStage.DEEP
        assert not SleepStage.AWAKE.is_asleep


class TestSummaries:
    def test_daily_summary_to_dict(self) -> None:
        day = DailySummary(
            date=date(2026, 2, 23),
            metrics={
                "StepCount": AdditiveSummary(total=9000, count=12),
                "HeartRate": SampledSummary(avg=64.0, min=51.0, max=120.0, count=300),
            },
        )
        data = day.to_dict()
        assert day.date_key == "2026-02-23"
        assert list(data["metrics"]) == ["HeartRate", "StepCount"]
        assert data["metrics"]["StepCount"] == {"total": 9000, "count": 12}
        assert "sleep" not in data

    def test_sleep_efficiency_never_zero(self) -> None:
        summary = SleepSummary()
        summary.add(SleepStage.CORE, 60)
        assert summary.efficiency is None
        assert "efficiency" not in summary.to_dict()

    def test_non_positive_minutes_ignored(self) -> None:
        summary = SleepSummary()
        summary.add(SleepStage.DEEP, 0)
        summary.add(SleepStage.DEEP, -5)
        assert summary.deep_minutes == 0


class TestCompleteness:
    def test_tier_rank_order(self) -> None:
        ranks = [tier.rank for tier in (
            CompletenessTier.NONE, CompletenessTier.BRONZE, CompletenessTier.SILVER, CompletenessTier.GOLD,
        )]
        assert ranks == sorted(ranks)

    def test_result_round_trip(self) -> None:
        result = CompletenessResult(
            score=87, tier=CompletenessTier.GOLD, core_complete=True, days_covered=90, record_count=48213,
        )
        assert result.to_dict()["coreComplete"] is True
        assert CompletenessResult.from_dict(result.to_dict()) == result
