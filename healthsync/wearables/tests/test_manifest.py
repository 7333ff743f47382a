"""Tests for ManifestBuilder, Manifest and the canonical payload encoding."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta

import pytest

from healthsync.errors import EncodingError
from healthsync.wearables.aggregator import DailyAggregator
from healthsync.wearables.base import CompletenessResult, CompletenessTier, DateRange
from healthsync.wearables.manifest import (
    MANIFEST_VERSION,
    HealthPayload,
    Manifest,
    ManifestBuilder,
    SourceBreakdown,
)
from healthsync.wearables.metrics import HK_HEART_RATE, HK_STEP_COUNT
from healthsync.wearables.tests.conftest import TEST_DAY, TEST_RANGE, UTC, make_dataset, make_sample

COMPLETENESS = CompletenessResult(
    score=78,
    tier=CompletenessTier.SILVER,
    core_complete=True,
    days_covered=3,
    record_count=42,
)


def _fixed_clock() -> datetime:
    return datetime(2026, 2, 24, 9, 30, tzinfo=UTC)


@pytest.fixture
def builder() -> ManifestBuilder:
    return ManifestBuilder(clock=_fixed_clock)


@pytest.fixture
def summaries():
    return DailyAggregator(tz=UTC).aggregate(make_dataset(3), TEST_RANGE)


# ---------------------------------------------------------------------------
# SourceBreakdown
# ---------------------------------------------------------------------------


class TestSourceBreakdown:
    def test_counts_by_device_class(self) -> None:
        samples = [
            make_sample(HK_STEP_COUNT, 10, TEST_DAY, source="Apple Watch Series 9"),
            make_sample(HK_STEP_COUNT, 10, TEST_DAY, source="Apple Watch"),
            make_sample(HK_STEP_COUNT, 10, TEST_DAY, source="Jane's iPhone"),
            make_sample(HK_HEART_RATE, 60, TEST_DAY, source="Withings"),
            make_sample(HK_HEART_RATE, 60, TEST_DAY, source=None),
        ]
        sources = SourceBreakdown.from_samples(samples)
        assert (sources.watch, sources.phone, sources.other) == (2, 1, 2)
        assert sources.total == 5

    def test_from_dict_defaults_missing_keys(self) -> None:
        assert SourceBreakdown.from_dict({"watch": 3}) == SourceBreakdown(watch=3)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class TestManifestBuilder:
    def test_build(self, builder: ManifestBuilder, summaries) -> None:
        manifest = builder.build(
            summaries,
            COMPLETENESS,
            SourceBreakdown(watch=40, phone=2),
            TEST_RANGE,
            [HK_STEP_COUNT, "HeartRate", HK_HEART_RATE],
        )
        assert manifest.version == MANIFEST_VERSION
        assert manifest.export_date == date(2026, 2, 24)
        assert manifest.date_range == (TEST_RANGE.start_day, TEST_RANGE.end_day)
        assert manifest.metrics_present == ("HeartRate", "StepCount")
        assert manifest.completeness is COMPLETENESS
        assert manifest.sources.total == 42

    def test_missing_sources_default_to_zero(self, builder: ManifestBuilder, summaries) -> None:
        manifest = builder.build(summaries, COMPLETENESS, None, TEST_RANGE, [])
        assert manifest.sources == SourceBreakdown()

    def test_missing_summaries_raises(self, builder: ManifestBuilder) -> None:
        with pytest.raises(EncodingError):
            builder.build(None, COMPLETENESS, None, TEST_RANGE, [])

    def test_missing_completeness_raises(self, builder: ManifestBuilder, summaries) -> None:
        with pytest.raises(EncodingError):
            builder.build(summaries, None, None, TEST_RANGE, [])


# ---------------------------------------------------------------------------
# Manifest document
# ---------------------------------------------------------------------------


class TestManifestDocument:
    def _manifest(self) -> Manifest:
        return Manifest(
            export_date=date(2026, 2, 24),
            date_range=(date(2026, 1, 24), date(2026, 2, 24)),
            metrics_present=("HeartRate", "StepCount"),
            completeness=COMPLETENESS,
            sources=SourceBreakdown(watch=40, phone=2),
        )

    def test_to_dict(self) -> None:
        data = self._manifest().to_dict()
        assert data["version"] == 1
        assert data["exportDate"] == "2026-02-24"
        assert data["dateRange"] == {"start": "2026-01-24", "end": "2026-02-24"}
        assert data["completeness"]["tier"] == "SILVER"
        assert data["completeness"]["coreComplete"] is True
        assert data["sources"] == {"watch": 40, "phone": 2, "other": 0}
        assert "uploadDate" not in data

    def test_from_dict_round_trip(self) -> None:
        manifest = self._manifest()
        assert Manifest.from_dict(manifest.to_dict()) == manifest

    def test_from_dict_ignores_unknown_keys(self) -> None:
        data = self._manifest().to_dict()
        data["version"] = 2
        data["futureField"] = {"nested": True}
        data["completeness"]["confidence"] = 0.9
        manifest = Manifest.from_dict(data)
        assert manifest.version == 2
        assert manifest.completeness == COMPLETENESS

    def test_from_dict_accepts_full_timestamps(self) -> None:
        data = self._manifest().to_dict()
        data["exportDate"] = "2026-02-24T09:30:00Z"
        assert Manifest.from_dict(data).export_date == date(2026, 2, 24)

    @pytest.mark.parametrize("missing", ["dateRange", "exportDate", "completeness"])
    def test_from_dict_missing_field_raises(self, missing: str) -> None:
        data = self._manifest().to_dict()
        del data[missing]
        with pytest.raises(EncodingError):
            Manifest.from_dict(data)

    def test_from_dict_bad_date_raises(self) -> None:
        data = self._manifest().to_dict()
        data["dateRange"]["start"] = "not-a-date"
        with pytest.raises(EncodingError):
            Manifest.from_dict(data)


# ---------------------------------------------------------------------------
# Payload encoding
# ---------------------------------------------------------------------------


class TestHealthPayload:
    def test_identical_inputs_give_identical_bytes(self, builder: ManifestBuilder) -> None:
        def encode() -> bytes:
            summaries = DailyAggregator(tz=UTC).aggregate(make_dataset(3), TEST_RANGE)
            manifest = builder.build(
                summaries, COMPLETENESS, SourceBreakdown(watch=5), TEST_RANGE, [HK_STEP_COUNT]
            )
            return HealthPayload(manifest=manifest, daily_summaries=summaries).to_json_bytes()

        assert encode() == encode()

    def test_encoding_is_canonical(self, builder: ManifestBuilder, summaries) -> None:
        manifest = builder.build(summaries, COMPLETENESS, None, TEST_RANGE, [HK_STEP_COUNT])
        raw = HealthPayload(manifest=manifest, daily_summaries=summaries).to_json_bytes()
        text = raw.decode("utf-8")
        assert ", " not in text and ": " not in text
        document = json.loads(text)
        assert list(document) == ["dailySummaries", "manifest"]
        assert list(document["dailySummaries"]) == sorted(document["dailySummaries"])
        assert document["dailySummaries"][TEST_DAY.date().isoformat()]["sleep"]["total"] == 390

    def test_summary_order_does_not_matter(self, builder: ManifestBuilder, summaries) -> None:
        manifest = builder.build(summaries, COMPLETENESS, None, TEST_RANGE, [])
        reversed_summaries = dict(reversed(list(summaries.items())))
        forward = HealthPayload(manifest=manifest, daily_summaries=summaries).to_json_bytes()
        backward = HealthPayload(manifest=manifest, daily_summaries=reversed_summaries).to_json_bytes()
        assert forward == backward

    def test_export_date_changes_bytes(self, summaries) -> None:
        later = ManifestBuilder(clock=lambda: _fixed_clock() + timedelta(days=1))
        a = ManifestBuilder(clock=_fixed_clock).build(summaries, COMPLETENESS, None, TEST_RANGE, [])
        b = later.build(summaries, COMPLETENESS, None, TEST_RANGE, [])
        assert HealthPayload(a, summaries).to_json_bytes() != HealthPayload(b, summaries).to_json_bytes()

    def test_same_day_rebuild_is_stable(self, summaries) -> None:
        morning = ManifestBuilder(clock=_fixed_clock)
        evening = ManifestBuilder(clock=lambda: _fixed_clock() + timedelta(hours=10))
        a = morning.build(summaries, COMPLETENESS, None, TEST_RANGE, [])
        b = evening.build(summaries, COMPLETENESS, None, TEST_RANGE, [])
        assert HealthPayload(a, summaries).to_json_bytes() == HealthPayload(b, summaries).to_json_bytes()

    def test_date_range_uses_calendar_days(self, builder: ManifestBuilder, summaries) -> None:
        window = DateRange(
            datetime(2026, 2, 20, 23, 59, tzinfo=UTC),
            datetime(2026, 2, 23, 0, 1, tzinfo=UTC),
        )
        manifest = builder.build(summaries, COMPLETENESS, None, window, [])
        assert manifest.date_range == (date(2026, 2, 20), date(2026, 2, 23))
