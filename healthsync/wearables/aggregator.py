"""Daily aggregator: fold raw samples into per-day summaries.

Samples are grouped by (calendar day, metric).  The day is the device-local
date of the sample's start, except for sleep, whose samples are grouped by
their end (a night belongs to the morning it ends).

Additive metrics (steps, energy, minutes) are summed; every other numeric
metric is reduced to avg/min/max.  Sleep samples are bucketed per stage into
a SleepSummary.

Pure: no I/O, no shared state, never raises on malformed samples.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime, tzinfo
from typing import Iterable

from healthsync.wearables.base import (
    AdditiveSummary,
    DailySummary,
    DateRange,
    MetricSummary,
    RawSample,
    SampledSummary,
    SleepStage,
    SleepSummary,
)
from healthsync.wearables.metrics import (
    is_additive_metric,
    is_sleep_metric,
    normalize_metric_key,
)

logger = logging.getLogger("healthsync.wearables.aggregator")


def summarize_values(metric_id: str, values: list[float]) -> MetricSummary:
    """Reduce one day's values for one metric to its MetricSummary.

    Args:
        metric_id: Raw or normalized metric identifier.
        values:    Non-empty list of numeric readings.

    Returns:
        AdditiveSummary for additive metrics, SampledSummary otherwise.
    """
    if is_additive_metric(metric_id):
        return AdditiveSummary(total=sum(values), count=len(values))
    return SampledSummary(
        avg=sum(values) / len(values),
        min=min(values),
        max=max(values),
        count=len(values),
    )


def _merge_metric(a: MetricSummary, b: MetricSummary) -> MetricSummary:
    if isinstance(a, AdditiveSummary) and isinstance(b, AdditiveSummary):
        return AdditiveSummary(total=a.total + b.total, count=a.count + b.count)
    if isinstance(a, SampledSummary) and isinstance(b, SampledSummary):
        count = a.count + b.count
        return SampledSummary(
            avg=(a.avg * a.count + b.avg * b.count) / count if count else 0.0,
            min=min(a.min, b.min),
            max=max(a.max, b.max),
            count=count,
        )
    logger.debug("Cannot merge %s with %s; keeping the later summary", type(a).__name__, type(b).__name__)
    return replace(b)


def _merge_sleep(a: SleepSummary | None, b: SleepSummary | None) -> SleepSummary | None:
    if a is None:
        return replace(b) if b is not None else None
    if b is None:
        return replace(a)
    return SleepSummary(
        total_minutes_asleep=a.total_minutes_asleep + b.total_minutes_asleep,
        in_bed_minutes=a.in_bed_minutes + b.in_bed_minutes,
        awake_minutes=a.awake_minutes + b.awake_minutes,
        core_minutes=a.core_minutes + b.core_minutes,
        deep_minutes=a.deep_minutes + b.deep_minutes,
        rem_minutes=a.rem_minutes + b.rem_minutes,
    )


class DailyAggregator:
    """Group raw samples into DailySummary records keyed by ISO date.

    Usage::

        aggregator = DailyAggregator()
        summaries = aggregator.aggregate(samples, DateRange(start, end))
        summaries["2026-02-23"].metrics["StepCount"].total
    """

    def __init__(self, tz: tzinfo | None = None) -> None:
        """Initialize the aggregator.

        Args:
            tz: Zone used to find a timestamp's calendar day.  None means the
                device's local zone.
        """
        self._tz = tz

    def day_of(self, ts: datetime) -> date:
        """Return the local calendar day for a timestamp.

        Naive timestamps are already local wall time and are used as-is.
        """
        if ts.tzinfo is None:
            return ts.date()
        return ts.astimezone(self._tz).date()

    def aggregate(
        self,
        samples: Iterable[RawSample],
        date_range: DateRange,
    ) -> dict[str, DailySummary]:
        """Aggregate samples into daily summaries.

        Args:
            samples:    Raw samples from a SampleSource.
            date_range: Only samples whose start lies in this range are folded.

        Returns:
            Dict of ISO date → DailySummary, in date order.  A day is present
            when at least one in-range sample falls on it.
        """
        days: dict[str, DailySummary] = {}
        grouped: dict[tuple[str, str], list[float]] = defaultdict(list)
        out_of_range = 0
        skipped_values = 0

        def _day_summary(day: date) -> DailySummary:
            key = day.isoformat()
            if key not in days:
                days[key] = DailySummary(date=day)
            return days[key]

        for sample in samples:
            if not date_range.contains(sample.start):
                out_of_range += 1
                continue

            if is_sleep_metric(sample.metric_id):
                summary = _day_summary(self.day_of(sample.end))
                if summary.sleep is None:
                    summary.sleep = SleepSummary()
                summary.sleep.add(SleepStage.parse(sample.value), sample.duration_minutes)
                continue

            summary = _day_summary(self.day_of(sample.start))
            value = sample.numeric_value
            if value is None or not math.isfinite(value):
                skipped_values += 1
                continue
            grouped[(summary.date_key, normalize_metric_key(sample.metric_id))].append(value)

        for (day_key, metric_key), values in grouped.items():
            days[day_key].metrics[metric_key] = summarize_values(metric_key, values)

        logger.debug(
            "Aggregated %d days (%d metric groups); %d samples out of range, %d non-numeric values",
            len(days), len(grouped), out_of_range, skipped_values,
        )
        return dict(sorted(days.items()))

    @staticmethod
    def merge(
        a: dict[str, DailySummary],
        b: dict[str, DailySummary],
    ) -> dict[str, DailySummary]:
        """Combine two aggregation results into a new map.

        Additive totals and counts add, sampled summaries merge by weighted
        mean / min / max, and sleep buckets add.  Inputs are not modified.
        """
        merged: dict[str, DailySummary] = {}
        for key in sorted(set(a) | set(b)):
            left, right = a.get(key), b.get(key)
            if left is None or right is None:
                only = left or right
                merged[key] = DailySummary(
                    date=only.date,
                    metrics={m: replace(s) for m, s in only.metrics.items()},
                    sleep=replace(only.sleep) if only.sleep is not None else None,
                )
                continue

            metrics: dict[str, MetricSummary] = {}
            for metric in sorted(set(left.metrics) | set(right.metrics)):
                lm, rm = left.metrics.get(metric), right.metrics.get(metric)
                if lm is None or rm is None:
                    metrics[metric] = replace(lm or rm)
                else:
                    metrics[metric] = _merge_metric(lm, rm)
            merged[key] = DailySummary(
                date=left.date,
                metrics=metrics,
                sleep=_merge_sleep(left.sleep, right.sleep),
            )
        return merged
