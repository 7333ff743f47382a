"""Manifest builder and the uploaded payload document.

The payload that is encrypted and stored off-device is::

    {
      "manifest": {
        "version": 1,
        "exportDate": "2026-02-23",
        "dateRange": {"start": "2025-02-23", "end": "2026-02-23"},
        "metricsPresent": ["HeartRate", "SleepAnalysis", "StepCount", ...],
        "completeness": {"score": 78, "tier": "SILVER", "coreComplete": true,
                         "daysCovered": 90, "recordCount": 48213},
        "sources": {"watch": 41000, "phone": 7000, "other": 213}
      },
      "dailySummaries": {
        "2026-02-23": {"metrics": {"StepCount": {"total": 8421, "count": 96}},
                       "sleep": {"total": 390, "inBed": 480, ...}}
      }
    }

Serialization is canonical (sorted keys, compact separators) so the same
summaries and completeness always produce byte-identical payloads.  The
upload timestamp is deliberately not part of the document; it travels as
storage metadata.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Mapping

from healthsync.errors import EncodingError
from healthsync.wearables.base import (
    CompletenessResult,
    DailySummary,
    DateRange,
    RawSample,
)
from healthsync.wearables.metrics import classify_source, normalize_metric_key

logger = logging.getLogger("healthsync.wearables.manifest")

MANIFEST_VERSION = 1


@dataclass(frozen=True)
class SourceBreakdown:
    """Raw sample counts per recording device class."""

    watch: int = 0
    phone: int = 0
    other: int = 0

    @property
    def total(self) -> int:
        return self.watch + self.phone + self.other

    @classmethod
    def from_samples(cls, samples: Iterable[RawSample]) -> "SourceBreakdown":
        counts = {"watch": 0, "phone": 0, "other": 0}
        for sample in samples:
            counts[classify_source(sample.source_tag)] += 1
        return cls(**counts)

    def to_dict(self) -> dict:
        return {"watch": self.watch, "phone": self.phone, "other": self.other}

    @classmethod
    def from_dict(cls, data: Mapping) -> "SourceBreakdown":
        return cls(
            watch=int(data.get("watch", 0)),
            phone=int(data.get("phone", 0)),
            other=int(data.get("other", 0)),
        )


@dataclass(frozen=True)
class Manifest:
    """Metadata describing one uploaded dataset.

    Attributes:
        export_date:     Day the payload was built.
        date_range:      Days the dataset covers.
        metrics_present: Sorted normalized metric keys with data.
        completeness:    Completeness of the dataset.
        sources:         Raw sample counts per device class.
        version:         Document schema version.
    """

    export_date: date
    date_range: tuple[date, date]
    metrics_present: tuple[str, ...]
    completeness: CompletenessResult
    sources: SourceBreakdown = field(default_factory=SourceBreakdown)
    version: int = MANIFEST_VERSION

    def to_dict(self) -> dict:
        start, end = self.date_range
        return {
            "version": self.version,
            "exportDate": self.export_date.isoformat(),
            "dateRange": {"start": start.isoformat(), "end": end.isoformat()},
            "metricsPresent": list(self.metrics_present),
            "completeness": self.completeness.to_dict(),
            "sources": self.sources.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "Manifest":
        """Read a manifest document of any version, ignoring unknown keys.

        Raises:
            EncodingError: If a required field is missing or malformed.
        """
        try:
            version = int(data.get("version", MANIFEST_VERSION))
            date_range = data["dateRange"]
            return cls(
                version=version,
                export_date=date.fromisoformat(str(data["exportDate"])[:10]),
                date_range=(
                    date.fromisoformat(str(date_range["start"])[:10]),
                    date.fromisoformat(str(date_range["end"])[:10]),
                ),
                metrics_present=tuple(sorted(data.get("metricsPresent", []))),
                completeness=CompletenessResult.from_dict(data["completeness"]),
                sources=SourceBreakdown.from_dict(data.get("sources") or {}),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise EncodingError(f"Malformed manifest: {exc}") from exc


@dataclass(frozen=True)
class HealthPayload:
    """Manifest plus the daily summaries it describes; the unit that is uploaded."""

    manifest: Manifest
    daily_summaries: Mapping[str, DailySummary]

    def to_dict(self) -> dict:
        return {
            "manifest": self.manifest.to_dict(),
            "dailySummaries": {
                key: self.daily_summaries[key].to_dict()
                for key in sorted(self.daily_summaries)
            },
        }

    def to_json_bytes(self) -> bytes:
        """Canonical UTF-8 JSON encoding."""
        try:
            text = json.dumps(
                self.to_dict(),
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Failed to serialize health payload: {exc}") from exc
        return text.encode("utf-8")


class ManifestBuilder:
    """Build a Manifest from aggregated data.

    Usage::

        builder = ManifestBuilder()
        manifest = builder.build(summaries, completeness, sources, date_range, metrics_present)
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the builder.

        Args:
            clock: Returns the current time; defaults to local now.
        """
        self._clock = clock or datetime.now

    def build(
        self,
        summaries: Mapping[str, DailySummary] | None,
        completeness: CompletenessResult | None,
        sources: SourceBreakdown | None,
        date_range: DateRange,
        metrics_present: Iterable[str],
    ) -> Manifest:
        """Assemble the manifest for one dataset.

        Raises:
            EncodingError: If summaries or completeness are missing.
        """
        if summaries is None:
            raise EncodingError("Cannot build manifest without daily summaries")
        if completeness is None:
            raise EncodingError("Cannot build manifest without a completeness result")

        keys = tuple(sorted({normalize_metric_key(m) for m in metrics_present}))
        manifest = Manifest(
            export_date=self._clock().date(),
            date_range=(date_range.start_day, date_range.end_day),
            metrics_present=keys,
            completeness=completeness,
            sources=sources or SourceBreakdown(),
        )
        logger.debug(
            "Built manifest v%d: %d metrics, %d days, score %d",
            manifest.version, len(keys), len(summaries), completeness.score,
        )
        return manifest
