"""Pydantic models for the sync endpoints."""

from __future__ import annotations

from datetime import date, datetime

from healthsync.models.base import HealthSyncBase


class SyncRequest(HealthSyncBase):
    from_date: datetime | date | None = None
    to_date: datetime | date | None = None


class SyncResultRead(HealthSyncBase):
    success: bool
    tier: str | None = None
    score: int | None = None
    metrics_count: int | None = None
    days_covered: int | None = None
    error: str | None = None
    storj_uri: str | None = None
    content_hash: str | None = None
    attested_at: datetime | None = None


class SyncStateRead(HealthSyncBase):
    status: str
    progress: float
    message: str | None = None
    result: SyncResultRead | None = None
    error: str | None = None


class LastSyncRead(HealthSyncBase):
    last_sync_result: SyncResultRead | None = None
    last_sync_date: datetime | None = None
    last_from_date: datetime | None = None


class BackgroundSyncRead(HealthSyncBase):
    success: bool
    last_sync_date: datetime | None = None
