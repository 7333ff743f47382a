"""End-to-end sync orchestrator.

Runs the pipeline strictly in order::

    fetch → aggregate → score → manifest → encrypt → upload → attest

Progress windows: fetch 0–40% (source progress scaled in), aggregate
40–55%, score 55–60%, manifest 60–65%, encrypt 65–80%, upload 80–95%,
attest 95–100%.

Nothing is uploaded unless fetch, aggregation, scoring and the manifest all
succeeded.  Any failure ends the attempt in ``SyncState.failed`` with a
single-line message and a persisted ``SyncResult(success=False)``; there is
no automatic retry.  ``retry_sync()`` re-runs the whole pipeline with the
remembered ``from`` date.

Usage::

    orchestrator = SyncOrchestrator(source, storage, attestation, key_provider,
                                    store=LastSyncStore("~/.healthsync/last_sync.json"))
    orchestrator.add_listener(lambda state: print(state.progress, state.message))
    result = await orchestrator.perform_full_sync()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable

from healthsync.errors import (
    EncodingError,
    NoDataError,
    SourceUnavailableError,
    SyncError,
    SyncInProgressError,
)
from healthsync.services.attestation import AttestationClient, AttestationRequest, HealthDataType
from healthsync.services.crypto import EncryptionKey, encrypt_payload
from healthsync.services.storage import APPLE_HEALTH_DATA_TYPE, StorageClient
from healthsync.services.wallet import KeyProvider
from healthsync.sync.state import (
    InMemoryLastSyncStore,
    SyncRecordStore,
    SyncResult,
    SyncState,
)
from healthsync.wearables.aggregator import DailyAggregator
from healthsync.wearables.base import DateRange, RawSample, SampleSource, as_aware
from healthsync.wearables.completeness import CompletenessScorer
from healthsync.wearables.manifest import HealthPayload, Manifest, ManifestBuilder, SourceBreakdown
from healthsync.wearables.metrics import normalize_metric_key

logger = logging.getLogger("healthsync.sync.orchestrator")

StateListener = Callable[[SyncState], None]

_GENERIC_FAILURE = "Sync failed. Please try again."
_NO_RETRY = "No previous sync to retry"

# (start, end) progress window per step
_FETCH = (0.0, 0.4)
_AGGREGATE = (0.4, 0.55)
_SCORE = (0.55, 0.6)
_MANIFEST = (0.6, 0.65)
_ENCRYPT = (0.65, 0.8)
_UPLOAD = (0.8, 0.95)
_ATTEST = (0.95, 1.0)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _as_datetime(value: date | datetime, end_of_day: bool = False) -> datetime:
    """A bare date means its first instant, or its last one when ``end_of_day``."""
    if isinstance(value, datetime):
        return as_aware(value)
    return datetime.combine(value, time.max if end_of_day else time.min).astimezone()


class SyncOrchestrator:
    """Drive one sync at a time and publish its state.

    Collaborators are injected; aggregator, scorer, builder, store and clock
    have defaults.  Not reentrant: a call while a sync is running raises
    SyncInProgressError and leaves the running sync untouched.
    """

    def __init__(
        self,
        source: SampleSource,
        storage: StorageClient,
        attestation: AttestationClient,
        key_provider: KeyProvider,
        store: SyncRecordStore | None = None,
        aggregator: DailyAggregator | None = None,
        scorer: CompletenessScorer | None = None,
        builder: ManifestBuilder | None = None,
        clock: Callable[[], datetime] | None = None,
        lookback_days: int = 365,
        platform: str = "python",
    ) -> None:
        self._source = source
        self._storage = storage
        self._attestation = attestation
        self._key_provider = key_provider
        self._store = store or InMemoryLastSyncStore()
        self._aggregator = aggregator or DailyAggregator()
        self._scorer = scorer or CompletenessScorer()
        self._clock = clock or _local_now
        self._builder = builder or ManifestBuilder(clock=self._clock)
        self._lookback = timedelta(days=lookback_days)
        self._platform = platform

        self._record = self._store.load()
        self._state = SyncState.idle()
        self._lock = asyncio.Lock()
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    @property
    def last_result(self) -> SyncResult | None:
        return self._record.last_sync_result

    @property
    def last_sync_date(self) -> datetime | None:
        return self._record.last_sync_date

    @property
    def last_from_date(self) -> datetime | None:
        return self._record.last_from_date

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback that receives every state transition."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dismiss(self) -> None:
        """Return a finished (succeeded / failed) state to idle."""
        if self._state.is_terminal:
            self._set_state(SyncState.idle())

    def _set_state(self, state: SyncState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Sync state listener %r failed", listener)

    def _progress(self, window: tuple[float, float], fraction: float, message: str) -> None:
        lo, hi = window
        self._set_state(SyncState.syncing(lo + (hi - lo) * min(max(fraction, 0.0), 1.0), message))

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def perform_full_sync(
        self,
        from_date: date | datetime | None = None,
        to_date: date | datetime | None = None,
    ) -> SyncResult:
        """Run the whole pipeline for [from_date, to_date].

        Args:
            from_date: Range start; defaults to ``to_date`` minus the lookback.
            to_date:   Range end; defaults to now.

        Returns:
            The SyncResult, also published through ``state`` and persisted.

        Raises:
            SyncInProgressError: If a sync is already running.
        """
        if self._lock.locked():
            raise SyncInProgressError("A sync is already in progress")
        async with self._lock:
            end = _as_datetime(to_date, end_of_day=True) if to_date is not None else self._clock()
            start = _as_datetime(from_date) if from_date is not None else end - self._lookback
            return await self._run(start, end)

    async def retry_sync(self) -> SyncResult:
        """Re-run the full pipeline with the last attempt's ``from`` date.

        Raises:
            SyncInProgressError: If a sync is already running.
        """
        if self._lock.locked():
            raise SyncInProgressError("A sync is already in progress")
        if self._record.last_from_date is None:
            logger.warning("Retry requested but no previous sync is recorded")
            self._set_state(SyncState.failed(_NO_RETRY))
            return SyncResult.failure(_NO_RETRY)
        logger.info("Retrying sync from %s", self._record.last_from_date.isoformat())
        return await self.perform_full_sync(from_date=self._record.last_from_date)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(self, start: datetime, end: datetime) -> SyncResult:
        logger.info("Sync started for %s → %s", start.isoformat(), end.isoformat())
        self._record.last_from_date = start
        self._set_state(SyncState.syncing(0.0, "Starting sync..."))

        try:
            result = await self._pipeline(start, end)
        except SyncError as exc:
            logger.warning("Sync failed: %s", exc.message)
            return self._finish_failed(exc.user_message)
        except Exception:
            logger.exception("Unexpected error during sync")
            return self._finish_failed(_GENERIC_FAILURE)

        self._record.last_sync_result = result
        self._record.last_sync_date = self._clock()
        self._persist()
        self._set_state(SyncState.succeeded(result))
        logger.info(
            "Sync complete: %s score=%s tier=%s uri=%s",
            result.content_hash, result.score, result.tier, result.storj_uri,
        )
        return result

    def _finish_failed(self, error: str) -> SyncResult:
        result = SyncResult.failure(error)
        self._record.last_sync_result = result
        self._persist()
        self._set_state(SyncState.failed(error))
        return result

    def _persist(self) -> None:
        try:
            self._store.save(self._record)
        except OSError:
            logger.exception("Could not persist sync state")

    def _require_key(self) -> EncryptionKey:
        key = self._key_provider.get_encryption_key()
        if key is None or not key.encryption_key:
            raise EncodingError(
                "Wallet not connected or encryption key missing",
                user_message="Please connect your wallet to sync health data",
            )
        return key

    async def _fetch(self, start: datetime, end: datetime) -> list[RawSample]:
        self._progress(_FETCH, 0.0, "Fetching health data...")
        try:
            samples = await self._source.fetch_samples(
                start, end,
                on_progress=lambda fraction, message: self._progress(_FETCH, fraction, message),
            )
        except SyncError:
            raise
        except Exception as exc:
            raise SourceUnavailableError(f"Fetching samples failed: {exc}") from exc
        if not samples:
            raise NoDataError("No health data available to sync")
        return samples

    async def _pipeline(self, start: datetime, end: datetime) -> SyncResult:
        key = self._require_key()
        date_range = DateRange(start, end)

        # 1. Fetch
        samples = await self._fetch(start, end)

        # 2. Aggregate
        self._progress(_AGGREGATE, 0.0, "Aggregating daily summaries...")
        summaries = self._aggregator.aggregate(samples, date_range)

        # 3. Score
        self._progress(_SCORE, 0.0, "Calculating completeness...")
        in_range = [s for s in samples if date_range.contains(s.start)]
        metrics_present = sorted({normalize_metric_key(s.metric_id) for s in in_range})
        completeness = self._scorer.score(
            metrics_present, start, end,
            days_covered=len(summaries),
            record_count=len(in_range),
        )

        # 4. Manifest
        self._progress(_MANIFEST, 0.0, "Building manifest...")
        manifest = self._builder.build(
            summaries, completeness, SourceBreakdown.from_samples(in_range), date_range, metrics_present,
        )
        payload = HealthPayload(manifest=manifest, daily_summaries=summaries)

        # 5. Serialize + encrypt
        self._progress(_ENCRYPT, 0.0, "Encrypting health data...")
        try:
            ciphertext = encrypt_payload(payload.to_json_bytes(), key)
        except EncodingError:
            raise
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Encrypting payload failed: {exc}") from exc

        # 6. Upload
        self._progress(_UPLOAD, 0.0, "Uploading encrypted data...")
        stored = await self._storage.store(
            ciphertext,
            APPLE_HEALTH_DATA_TYPE,
            self._store_metadata(manifest),
            key.wallet_address,
        )

        # 7. Attest
        self._progress(_ATTEST, 0.0, "Creating on-chain attestation...")
        receipt = await self._attestation.submit(AttestationRequest(
            content_hash=stored.content_hash,
            data_type=HealthDataType.APPLE_HEALTH,
            start_date=manifest.date_range[0],
            end_date=manifest.date_range[1],
            completeness_score=completeness.score,
            record_count=completeness.record_count,
            core_complete=completeness.core_complete,
        ))

        self._progress(_ATTEST, 1.0, "Sync complete!")
        return SyncResult(
            success=True,
            tier=completeness.tier.value,
            score=completeness.score,
            metrics_count=len(manifest.metrics_present),
            days_covered=completeness.days_covered,
            storj_uri=stored.storj_uri,
            content_hash=stored.content_hash,
            attested_at=receipt.timestamp,
        )

    def _store_metadata(self, manifest: Manifest) -> dict[str, str]:
        start, end = manifest.date_range
        return {
            "version": str(manifest.version),
            "dateRange": f"{start.isoformat()}_{end.isoformat()}",
            "metricsCount": str(len(manifest.metrics_present)),
            "completenessScore": str(manifest.completeness.score),
            "tier": manifest.completeness.tier.value,
            "platform": self._platform,
            "uploadedAt": self._clock().isoformat(),
        }
