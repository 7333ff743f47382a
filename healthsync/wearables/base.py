"""Base classes and canonical data models for the healthsync pipeline.

Every sample source must subclass SampleSource and return RawSample records.
The aggregator folds those into DailySummary / MetricSummary / SleepSummary,
which are the single source of truth consumed by the scorer, manifest
builder, and sync orchestrator.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Callable, Union

logger = logging.getLogger("healthsync.wearables")

#: Progress callback: (fraction 0.0–1.0, human-readable message).
ProgressCallback = Callable[[float, str], None]


def as_aware(ts: datetime) -> datetime:
    """Return ts as a timezone-aware datetime; naive values are taken as local time."""
    return ts if ts.tzinfo is not None else ts.astimezone()


# ---------------------------------------------------------------------------
# Raw samples
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawSample:
    """One time-stamped reading as yielded by a sample source.

    Never modified after creation.

    Attributes:
        metric_id:  Source metric identifier (e.g. 'HKQuantityTypeIdentifierStepCount').
        value:      Numeric reading, or a string (sleep stage name, workout name).
        start:      Start of the measured interval.
        end:        End of the measured interval.
        source_tag: Name of the recording app/device ('Apple Watch', 'iPhone', ...).
    """

    metric_id: str
    value: float | str
    start: datetime
    end: datetime
    source_tag: str | None = None

    @property
    def numeric_value(self) -> float | None:
        """Return the value as a float, or None if it is not numeric."""
        if isinstance(self.value, bool):
            return None
        if isinstance(self.value, (int, float)):
            return float(self.value)
        try:
            return float(self.value)
        except (TypeError, ValueError):
            return None

    @property
    def duration_minutes(self) -> int:
        """Whole minutes between start and end (0 for inverted intervals)."""
        return max(int((self.end - self.start).total_seconds() // 60), 0)


@dataclass(frozen=True)
class DateRange:
    """Closed interval [start, end] a sync covers."""

    start: datetime
    end: datetime

    def contains(self, ts: datetime) -> bool:
        return as_aware(self.start) <= as_aware(ts) <= as_aware(self.end)

    @property
    def start_day(self) -> date:
        return self.start.date()

    @property
    def end_day(self) -> date:
        return self.end.date()

    @property
    def calendar_days(self) -> int:
        """Number of whole calendar days between start and end."""
        return max((self.end_day - self.start_day).days, 0)


# ---------------------------------------------------------------------------
# Sleep stages
# ---------------------------------------------------------------------------


class SleepStage(str, Enum):
    """Sleep stage tags.

    Numeric codes 0–5 map 1:1 onto IN_BED..REM.  Anything unrecognised
    becomes UNKNOWN, which is bucketed with CORE so that a single odd code
    never drops a night of sleep.
    """

    IN_BED = "inBed"
    ASLEEP = "asleep"
    AWAKE = "awake"
    CORE = "core"
    DEEP = "deep"
    REM = "rem"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: int) -> "SleepStage":
        return _STAGE_CODES.get(code, cls.UNKNOWN)

    @classmethod
    def parse(cls, value: object) -> "SleepStage":
        """Parse a stage tag, a numeric code, or a HealthKit value name."""
        if isinstance(value, SleepStage):
            return value
        if isinstance(value, bool) or value is None:
            return cls.UNKNOWN
        if isinstance(value, (int, float)):
            return cls.from_code(int(value)) if float(value).is_integer() else cls.UNKNOWN

        text = str(value).strip()
        try:
            as_number: float | None = float(text)
        except ValueError:
            as_number = None
        if as_number is not None:
            return cls.from_code(int(as_number)) if as_number.is_integer() else cls.UNKNOWN

        lowered = text.lower()
        # Specific stages first: 'AsleepREM' must not match the generic 'asleep'.
        for needle, stage in _STAGE_SUBSTRINGS:
            if needle in lowered:
                return stage
        return cls.UNKNOWN

    @property
    def bucket(self) -> "SleepStage":
        """The SleepSummary bucket this stage is counted in."""
        if self in (SleepStage.ASLEEP, SleepStage.UNKNOWN):
            return SleepStage.CORE
        return self

    @property
    def is_asleep(self) -> bool:
        return self.bucket in (SleepStage.CORE, SleepStage.DEEP, SleepStage.REM)


_STAGE_CODES: dict[int, SleepStage] = {
    0: SleepStage.IN_BED,
    1: SleepStage.ASLEEP,
    2: SleepStage.AWAKE,
    3: SleepStage.CORE,
    4: SleepStage.DEEP,
    5: SleepStage.REM,
}

_STAGE_SUBSTRINGS: tuple[tuple[str, SleepStage], ...] = (
    ("inbed", SleepStage.IN_BED),
    ("awake", SleepStage.AWAKE),
    ("core", SleepStage.CORE),
    ("deep", SleepStage.DEEP),
    ("rem", SleepStage.REM),
    ("asleep", SleepStage.ASLEEP),
)


# ---------------------------------------------------------------------------
# Daily summaries
# ---------------------------------------------------------------------------


@dataclass
class AdditiveSummary:
    """Daily summary of a metric that is summed across the day (steps, energy).

    Attributes:
        total: Sum of all values folded into the summary.
        count: Number of raw samples folded.
    """

    total: float
    count: int

    def to_dict(self) -> dict:
        return {"total": self.total, "count": self.count}


@dataclass
class SampledSummary:
    """Daily summary of a point-in-time metric (heart rate, HRV).

    Attributes:
        avg:   Mean of the folded values.
        min:   Smallest value.
        max:   Largest value.
        count: Number of raw samples folded.
    """

    avg: float
    min: float
    max: float
    count: int

    def to_dict(self) -> dict:
        return {"avg": self.avg, "min": self.min, "max": self.max, "count": self.count}


MetricSummary = Union[AdditiveSummary, SampledSummary]


@dataclass
class SleepSummary:
    """Stage-bucketed sleep minutes for one calendar day (the morning it ends).

    ``efficiency`` is total asleep / in bed, and is None (not 0) whenever no
    in-bed time was recorded.
    """

    total_minutes_asleep: int = 0
    in_bed_minutes: int = 0
    awake_minutes: int = 0
    core_minutes: int = 0
    deep_minutes: int = 0
    rem_minutes: int = 0

    @property
    def efficiency(self) -> float | None:
        if self.in_bed_minutes <= 0:
            return None
        return self.total_minutes_asleep / self.in_bed_minutes

    def add(self, stage: SleepStage, minutes: int) -> None:
        """Add ``minutes`` to the bucket for ``stage``."""
        if minutes <= 0:
            return
        bucket = stage.bucket
        if bucket is SleepStage.IN_BED:
            self.in_bed_minutes += minutes
        elif bucket is SleepStage.AWAKE:
            self.awake_minutes += minutes
        else:
            if bucket is SleepStage.DEEP:
                self.deep_minutes += minutes
            elif bucket is SleepStage.REM:
                self.rem_minutes += minutes
            else:
                self.core_minutes += minutes
            self.total_minutes_asleep += minutes

    def to_dict(self) -> dict:
        data: dict = {
            "total": self.total_minutes_asleep,
            "inBed": self.in_bed_minutes,
            "awake": self.awake_minutes,
            "core": self.core_minutes,
            "deep": self.deep_minutes,
            "rem": self.rem_minutes,
        }
        if self.efficiency is not None:
            data["efficiency"] = self.efficiency
        return data


@dataclass
class DailySummary:
    """All metrics and sleep for one calendar day.

    Attributes:
        date:    Calendar day (device-local).
        metrics: Normalized metric key → MetricSummary.
        sleep:   Sleep summary for the night ending on this day, if any.
    """

    date: date
    metrics: dict[str, MetricSummary] = field(default_factory=dict)
    sleep: SleepSummary | None = None

    @property
    def date_key(self) -> str:
        return self.date.isoformat()

    def to_dict(self) -> dict:
        data: dict = {
            "metrics": {key: self.metrics[key].to_dict() for key in sorted(self.metrics)},
        }
        if self.sleep is not None:
            data["sleep"] = self.sleep.to_dict()
        return data


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------


class CompletenessTier(str, Enum):
    NONE = "NONE"
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"

    @property
    def rank(self) -> int:
        return list(CompletenessTier).index(self)


@dataclass(frozen=True)
class CompletenessResult:
    """Completeness of one synced dataset.  Always recomputed, never mutated.

    Attributes:
        score:         0–100.
        tier:          Derived from score and core_complete.
        core_complete: At least 7 of the 9 core metrics are present.
        days_covered:  Distinct calendar days holding data.
        record_count:  Raw samples in the range.
    """

    score: int
    tier: CompletenessTier
    core_complete: bool
    days_covered: int
    record_count: int

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "tier": self.tier.value,
            "coreComplete": self.core_complete,
            "daysCovered": self.days_covered,
            "recordCount": self.record_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompletenessResult":
        return cls(
            score=int(data.get("score", 0)),
            tier=CompletenessTier(data.get("tier", "NONE")),
            core_complete=bool(data.get("coreComplete", False)),
            days_covered=int(data.get("daysCovered", 0)),
            record_count=int(data.get("recordCount", 0)),
        )


# ---------------------------------------------------------------------------
# Abstract sample source
# ---------------------------------------------------------------------------


class SampleSource(ABC):
    """Abstract base class for anything that yields raw biometric samples.

    Subclasses must implement fetch_samples().  Implementations raise
    SourceUnavailableError when the underlying store cannot be read.
    """

    #: Unique slug for logging and manifests.
    SOURCE_ID: str = "unknown"

    #: Human-readable name for logging and UI.
    DISPLAY_NAME: str = "Unknown Source"

    @abstractmethod
    async def fetch_samples(
        self,
        start: datetime,
        end: datetime,
        on_progress: ProgressCallback | None = None,
    ) -> list[RawSample]:
        """Return every sample whose start lies in [start, end].

        Args:
            start:       Earliest sample start (inclusive).
            end:         Latest sample start (inclusive).
            on_progress: Optional callback receiving (fraction, message).

        Returns:
            List of RawSample, in no particular order.
        """


class InMemorySampleSource(SampleSource):
    """A SampleSource backed by a list held in memory."""

    SOURCE_ID = "memory"
    DISPLAY_NAME = "In-memory samples"

    def __init__(self, samples: list[RawSample] | None = None) -> None:
        self._samples = list(samples or [])

    def extend(self, samples: list[RawSample]) -> None:
        self._samples.extend(samples)

    async def fetch_samples(
        self,
        start: datetime,
        end: datetime,
        on_progress: ProgressCallback | None = None,
    ) -> list[RawSample]:
        window = DateRange(start, end)
        selected = [s for s in self._samples if window.contains(s.start)]
        if on_progress:
            on_progress(1.0, f"Loaded {len(selected)} samples")
        return selected
