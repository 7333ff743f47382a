"""Shared fixtures for orchestrator, scheduler, and router tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from healthsync.services.attestation import AttestationClient, AttestationReceipt
from healthsync.services.crypto import EncryptionKey, compute_content_hash, derive_encryption_key
from healthsync.services.storage import StorageClient, StoreResult
from healthsync.services.wallet import StaticKeyProvider
from healthsync.sync.orchestrator import SyncOrchestrator
from healthsync.sync.state import InMemoryLastSyncStore
from healthsync.wearables.aggregator import DailyAggregator
from healthsync.wearables.base import InMemorySampleSource
from healthsync.wearables.completeness import CompletenessScorer
from healthsync.wearables.config_loader import load_completeness_config
from healthsync.wearables.tests.conftest import TEST_DAY, make_dataset

UTC = timezone.utc

WALLET = "0x1234567890abcdef1234567890abcdef12345678"
STORJ_URI = "storj://healthsync/0x1234/abc.bin"

#: Fixed "now": the morning after TEST_DAY.
NOW = datetime(2026, 2, 24, 9, 0, tzinfo=UTC)
FROM_DATE = TEST_DAY - timedelta(days=10)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def encryption_key() -> EncryptionKey:
    return EncryptionKey(
        wallet_address=WALLET,
        encryption_key=derive_encryption_key("0xsignature"),
        signature="0xsignature",
    )


@pytest.fixture
def key_provider(encryption_key: EncryptionKey) -> StaticKeyProvider:
    return StaticKeyProvider(encryption_key)


@pytest.fixture
def source() -> InMemorySampleSource:
    """Ten days of every core metric ending on TEST_DAY."""
    return InMemorySampleSource(make_dataset(10))


@pytest.fixture
def storage() -> MagicMock:
    """StorageClient spy; the content hash echoes the real SHA-256 of the payload."""
    client = MagicMock(spec=StorageClient)

    async def _store(payload: bytes, data_type: str, metadata: dict, wallet_address: str) -> StoreResult:
        return StoreResult(storj_uri=STORJ_URI, content_hash=compute_content_hash(payload), size=len(payload))

    client.store = AsyncMock(side_effect=_store)
    return client


@pytest.fixture
def attestation() -> MagicMock:
    client = MagicMock(spec=AttestationClient)

    async def _submit(request) -> AttestationReceipt:
        return AttestationReceipt(content_hash=request.content_hash, timestamp=NOW, tx_hash="0xfeed")

    client.submit = AsyncMock(side_effect=_submit)
    return client


@pytest.fixture
def store() -> InMemoryLastSyncStore:
    return InMemoryLastSyncStore()


@pytest.fixture
def orchestrator(
    source: InMemorySampleSource,
    storage: MagicMock,
    attestation: MagicMock,
    key_provider: StaticKeyProvider,
    store: InMemoryLastSyncStore,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        source=source,
        storage=storage,
        attestation=attestation,
        key_provider=key_provider,
        store=store,
        aggregator=DailyAggregator(tz=UTC),
        scorer=CompletenessScorer(load_completeness_config()),
        clock=fixed_clock,
    )
