"""Sync state machine values, sync results, and last-sync persistence.

State transitions::

    idle ──perform_full_sync──▶ syncing(p, msg) ──▶ succeeded(result) ──dismiss──▶ idle
                                        │
                                        └────────▶ failed(error) ──────dismiss──▶ idle

The persisted record (last result, last successful sync date, and the
``from`` date of the last attempt) survives restarts so ``retry_sync`` and
the background scheduler keep working.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger("healthsync.sync.state")


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one sync attempt.

    On failure only ``success`` and ``error`` are meaningful.

    Attributes:
        success:       Whether the whole pipeline completed.
        tier:          Completeness tier of the uploaded dataset.
        score:         Completeness score 0–100.
        metrics_count: Distinct metrics present.
        days_covered:  Days covered by the dataset.
        error:         Single-line user-facing error message.
        storj_uri:     Where the encrypted payload was stored.
        content_hash:  SHA-256 hex of the stored payload.
        attested_at:   When the attestation was recorded.
    """

    success: bool
    tier: str | None = None
    score: int | None = None
    metrics_count: int | None = None
    days_covered: int | None = None
    error: str | None = None
    storj_uri: str | None = None
    content_hash: str | None = None
    attested_at: datetime | None = None

    @classmethod
    def failure(cls, error: str) -> "SyncResult":
        return cls(success=False, error=error)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "tier": self.tier,
            "score": self.score,
            "metricsCount": self.metrics_count,
            "daysCovered": self.days_covered,
            "error": self.error,
            "storjUri": self.storj_uri,
            "contentHash": self.content_hash,
            "attestedAt": self.attested_at.isoformat() if self.attested_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncResult":
        attested_at = None
        if raw := data.get("attestedAt"):
            try:
                attested_at = datetime.fromisoformat(raw)
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed attestedAt in sync result: %r", raw)

        def _int(key: str) -> int | None:
            value = data.get(key)
            return int(value) if value is not None else None

        return cls(
            success=bool(data.get("success", False)),
            tier=data.get("tier"),
            score=_int("score"),
            metrics_count=_int("metricsCount"),
            days_covered=_int("daysCovered"),
            error=data.get("error"),
            storj_uri=data.get("storjUri"),
            content_hash=data.get("contentHash"),
            attested_at=attested_at,
        )


@dataclass(frozen=True)
class SyncState:
    """Observable state of the orchestrator.  Build with the factory methods."""

    status: SyncStatus = SyncStatus.IDLE
    progress: float = 0.0
    message: str | None = None
    result: SyncResult | None = None
    error: str | None = None

    @classmethod
    def idle(cls) -> "SyncState":
        return cls()

    @classmethod
    def syncing(cls, progress: float, message: str) -> "SyncState":
        return cls(
            status=SyncStatus.SYNCING,
            progress=min(max(float(progress), 0.0), 1.0),
            message=message,
        )

    @classmethod
    def succeeded(cls, result: SyncResult) -> "SyncState":
        return cls(status=SyncStatus.SUCCEEDED, progress=1.0, message="Sync complete!", result=result)

    @classmethod
    def failed(cls, error: str) -> "SyncState":
        return cls(status=SyncStatus.FAILED, message=error, error=error)

    @property
    def is_syncing(self) -> bool:
        return self.status is SyncStatus.SYNCING

    @property
    def is_terminal(self) -> bool:
        return self.status in (SyncStatus.SUCCEEDED, SyncStatus.FAILED)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@dataclass
class SyncRecord:
    """Persistent sync bookkeeping.

    Attributes:
        last_sync_result: Result of the most recent attempt (success or failure).
        last_sync_date:   When the last successful sync finished.
        last_from_date:   ``from`` date of the most recent attempt (for retry).
    """

    last_sync_result: SyncResult | None = None
    last_sync_date: datetime | None = None
    last_from_date: datetime | None = None

    def to_json(self) -> dict:
        return {
            "last_sync_result": self.last_sync_result.to_dict() if self.last_sync_result else None,
            "last_sync_date": self.last_sync_date.isoformat() if self.last_sync_date else None,
            "last_from_date": self.last_from_date.isoformat() if self.last_from_date else None,
        }

    @classmethod
    def from_json(cls, data: dict) -> "SyncRecord":
        record = cls()
        if result := data.get("last_sync_result"):
            try:
                record.last_sync_result = SyncResult.from_dict(result)
            except (AttributeError, TypeError, ValueError):
                logger.warning("Ignoring malformed last_sync_result in sync state: %r", result)
        for attr in ("last_sync_date", "last_from_date"):
            if raw := data.get(attr):
                try:
                    setattr(record, attr, datetime.fromisoformat(raw))
                except (TypeError, ValueError):
                    logger.warning("Ignoring malformed %s in sync state: %r", attr, raw)
        return record


class SyncRecordStore(ABC):
    """Single-writer persistence for the SyncRecord."""

    @abstractmethod
    def load(self) -> SyncRecord:
        """Return the stored record; an empty record when nothing is stored."""

    @abstractmethod
    def save(self, record: SyncRecord) -> None:
        """Replace the stored record."""


class InMemoryLastSyncStore(SyncRecordStore):
    """Keeps the record in memory (tests, ephemeral sessions)."""

    def __init__(self, record: SyncRecord | None = None) -> None:
        self._record = record or SyncRecord()
        self.save_count = 0

    def load(self) -> SyncRecord:
        return replace(self._record)

    def save(self, record: SyncRecord) -> None:
        self._record = replace(record)
        self.save_count += 1


class LastSyncStore(SyncRecordStore):
    """Stores the record as JSON at ``path``, replacing the file atomically."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SyncRecord:
        if not self._path.exists():
            return SyncRecord()
        try:
            data: Any = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read sync state %s (%s); starting fresh", self._path, exc)
            return SyncRecord()
        if not isinstance(data, dict):
            logger.warning("Sync state %s is not a JSON object; starting fresh", self._path)
            return SyncRecord()
        return SyncRecord.from_json(data)

    def save(self, record: SyncRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".last_sync.", suffix=".tmp", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(record.to_json(), fh, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Saved sync state to %s", self._path)
