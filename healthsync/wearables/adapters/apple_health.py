"""Apple Health export sample source.

Apple does not provide a server-side API, so data is exported from the
device and read here from one of two formats:

1. **XML export**: Apple Health's native ``export.xml`` (``Record`` and
   ``Workout`` elements).
2. **JSON export**: the structured format written by iOS Shortcuts and apps
   like Health Auto Export::

       {
           "HKQuantityTypeIdentifierStepCount": [
               {"value": "812", "startDate": "...", "endDate": "...", "sourceName": "Apple Watch"}
           ],
           "sleep": [{"type": "HKCategoryTypeIdentifierSleepAnalysis", "value": "...", ...}]
       }

   A record's ``type`` wins over the key it is listed under.

The export is parsed once and cached; ``fetch_samples`` then filters by start
timestamp and reports progress per metric.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any
from xml.etree import ElementTree as ET

from healthsync.errors import SourceUnavailableError
from healthsync.wearables.base import (
    DateRange,
    ProgressCallback,
    RawSample,
    SampleSource,
)
from healthsync.wearables.metrics import ALL_METRICS, HK_MINDFUL, HK_WORKOUT, normalize_metric_key

logger = logging.getLogger("healthsync.wearables.apple_health")

# Apple Health export.xml timestamps: "2026-02-23 07:14:09 -0800"
_EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# HKWorkoutActivityType → display name
_WORKOUT_NAMES: dict[str, str] = {
    "HKWorkoutActivityTypeRunning": "Running",
    "HKWorkoutActivityTypeCycling": "Cycling",
    "HKWorkoutActivityTypeWalking": "Walking",
    "HKWorkoutActivityTypeSwimming": "Swimming",
    "HKWorkoutActivityTypeHiking": "Hiking",
    "HKWorkoutActivityTypeYoga": "Yoga",
    "HKWorkoutActivityTypeFunctionalStrengthTraining": "Strength Training",
    "HKWorkoutActivityTypeTraditionalStrengthTraining": "Weight Training",
    "HKWorkoutActivityTypeCrossTraining": "Cross Training",
    "HKWorkoutActivityTypeElliptical": "Elliptical",
    "HKWorkoutActivityTypeRowing": "Rowing",
    "HKWorkoutActivityTypeStairClimbing": "Stair Climbing",
    "HKWorkoutActivityTypeHighIntensityIntervalTraining": "HIIT",
    "HKWorkoutActivityTypeDance": "Dance",
    "HKWorkoutActivityTypePilates": "Pilates",
    "HKWorkoutActivityTypeBoxing": "Boxing",
    "HKWorkoutActivityTypeKickboxing": "Kickboxing",
    "HKWorkoutActivityTypeMartialArts": "Martial Arts",
    "HKWorkoutActivityTypeTennis": "Tennis",
    "HKWorkoutActivityTypeBadminton": "Badminton",
    "HKWorkoutActivityTypeBasketball": "Basketball",
    "HKWorkoutActivityTypeSoccer": "Soccer",
    "HKWorkoutActivityTypeGolf": "Golf",
}

_KNOWN_KEYS: dict[str, str] = {normalize_metric_key(m): m for m in ALL_METRICS}


def parse_export_timestamp(value: str, tz: tzinfo | None = None) -> datetime:
    """Parse an export timestamp.

    Accepts the export.xml format and ISO 8601.  Naive results are pinned to
    ``tz`` when given, otherwise left as local wall time.

    Raises:
        ValueError: If the string is not a recognised timestamp.
    """
    text = value.strip()
    try:
        ts = datetime.strptime(text, _EXPORT_DATE_FORMAT)
    except ValueError:
        ts = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if ts.tzinfo is None and tz is not None:
        ts = ts.replace(tzinfo=tz)
    return ts


def _workout_name(activity_type: str) -> str:
    return _WORKOUT_NAMES.get(activity_type, "Workout")


def _metric_id_for(key: str) -> str:
    """Map a JSON export key onto its HealthKit identifier when it is known."""
    return _KNOWN_KEYS.get(normalize_metric_key(key), key)


class AppleHealthExportSource(SampleSource):
    """SampleSource reading an Apple Health XML or JSON export.

    Usage::

        source = AppleHealthExportSource(Path("~/Downloads/export.xml").expanduser())
        samples = await source.fetch_samples(start, end, on_progress=print_progress)
    """

    SOURCE_ID = "apple_health"
    DISPLAY_NAME = "Apple Health"

    def __init__(
        self,
        path: Path | str | None = None,
        data: bytes | dict | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            path: Export file (``.xml`` or ``.json``).
            data: Already-loaded export: XML bytes or a parsed JSON dict.
            tz:   Zone assigned to naive timestamps.
        """
        self._path = Path(path) if path is not None else None
        self._data = data
        self._tz = tz
        self._samples: list[RawSample] | None = None

    # ------------------------------------------------------------------
    # SampleSource
    # ------------------------------------------------------------------

    async def fetch_samples(
        self,
        start: datetime,
        end: datetime,
        on_progress: ProgressCallback | None = None,
    ) -> list[RawSample]:
        samples = self._load()
        window = DateRange(start, end)

        by_metric: dict[str, list[RawSample]] = {}
        for sample in samples:
            if window.contains(sample.start):
                by_metric.setdefault(sample.metric_id, []).append(sample)

        ordered = [m for m in ALL_METRICS if m in by_metric]
        ordered += sorted(m for m in by_metric if m not in ALL_METRICS)

        selected: list[RawSample] = []
        total = max(len(ordered), 1)
        for index, metric_id in enumerate(ordered):
            if on_progress:
                on_progress(index / total, f"Fetching {normalize_metric_key(metric_id)}...")
            selected.extend(by_metric[metric_id])

        if on_progress:
            on_progress(1.0, "Complete!")

        logger.info(
            "Apple Health: %d samples across %d metrics between %s and %s",
            len(selected), len(ordered), start.isoformat(), end.isoformat(),
        )
        return selected

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self) -> list[RawSample]:
        if self._samples is not None:
            return self._samples

        data = self._data
        if data is None:
            if self._path is None:
                raise SourceUnavailableError(
                    "No Apple Health export configured",
                    user_message="Health data is unavailable. Please export your Apple Health data.",
                )
            try:
                data = self._path.read_bytes()
            except OSError as exc:
                raise SourceUnavailableError(
                    f"Cannot read Apple Health export {self._path}: {exc}",
                    user_message="Health data is unavailable. Please export your Apple Health data.",
                ) from exc

        if isinstance(data, dict):
            self._samples = self.parse_json_export(data)
        elif self._is_json(data):
            try:
                parsed = json.loads(data)
            except ValueError as exc:
                raise SourceUnavailableError(f"Invalid Apple Health JSON: {exc}") from exc
            if not isinstance(parsed, dict):
                raise SourceUnavailableError("Apple Health JSON export must be an object")
            self._samples = self.parse_json_export(parsed)
        else:
            self._samples = self.parse_xml_export(data)
        return self._samples

    def _is_json(self, data: bytes) -> bool:
        if self._path is not None and self._path.suffix.lower() == ".json":
            return True
        return data.lstrip()[:1] in (b"{", b"[")

    # ------------------------------------------------------------------
    # XML export parsing
    # ------------------------------------------------------------------

    def parse_xml_export(self, xml_bytes: bytes) -> list[RawSample]:
        """Parse a full Apple Health XML export (export.xml).

        Records with missing or malformed dates are skipped.  Workouts become
        ``HKWorkoutTypeIdentifier`` samples whose value is the activity name.

        Raises:
            SourceUnavailableError: If the XML cannot be parsed.
        """
        try:
            root = ET.fromstring(xml_bytes)
        except ET.ParseError as exc:
            logger.error("Apple Health XML parse error: %s", exc)
            raise SourceUnavailableError(f"Invalid Apple Health XML: {exc}") from exc

        samples: list[RawSample] = []
        skipped = 0

        for record in root.iter("Record"):
            sample = self._build_sample(
                metric_id=record.get("type", ""),
                value=record.get("value", ""),
                start=record.get("startDate", ""),
                end=record.get("endDate", ""),
                source=record.get("sourceName") or record.get("device"),
            )
            if sample is None:
                skipped += 1
            else:
                samples.append(sample)

        for workout in root.iter("Workout"):
            sample = self._build_sample(
                metric_id=HK_WORKOUT,
                value=_workout_name(workout.get("workoutActivityType", "")),
                start=workout.get("startDate", ""),
                end=workout.get("endDate", ""),
                source=workout.get("sourceName"),
            )
            if sample is None:
                skipped += 1
            else:
                samples.append(sample)

        logger.info("Apple Health XML: parsed %d samples (%d skipped)", len(samples), skipped)
        return samples

    # ------------------------------------------------------------------
    # JSON export parsing
    # ------------------------------------------------------------------

    def parse_json_export(self, json_data: dict[str, Any]) -> list[RawSample]:
        """Parse a structured JSON export.

        Each top-level key holds a list of records; non-list values are ignored.
        """
        samples: list[RawSample] = []
        skipped = 0

        for metric_key, records in json_data.items():
            if not isinstance(records, list):
                continue
            for record in records:
                if not isinstance(record, dict):
                    skipped += 1
                    continue
                sample = self._build_sample(
                    metric_id=_metric_id_for(str(record.get("type") or metric_key)),
                    value=record.get("value", ""),
                    start=record.get("startDate") or record.get("date") or "",
                    end=record.get("endDate") or record.get("startDate") or record.get("date") or "",
                    source=record.get("sourceName") or record.get("source") or record.get("device"),
                )
                if sample is None:
                    skipped += 1
                else:
                    samples.append(sample)

        logger.info("Apple Health JSON: parsed %d samples (%d skipped)", len(samples), skipped)
        return samples

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_sample(
        self,
        metric_id: str,
        value: Any,
        start: str,
        end: str,
        source: str | None,
    ) -> RawSample | None:
        if not metric_id or not start:
            return None
        try:
            start_dt = parse_export_timestamp(str(start), self._tz)
            end_dt = parse_export_timestamp(str(end or start), self._tz)
        except ValueError:
            return None

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            sample_value: float | str = float(value)
        else:
            sample_value = str(value)

        # Mindful sessions carry no quantity; their value is the session length.
        if metric_id == HK_MINDFUL:
            sample_value = float(max(int((end_dt - start_dt).total_seconds() // 60), 0))

        return RawSample(
            metric_id=metric_id,
            value=sample_value,
            start=start_dt,
            end=end_dt,
            source_tag=source,
        )
