"""Tests for the R2 storage backend, with a mocked boto3 S3 client."""

from __future__ import annotations

import io
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from healthsync.config import Settings
from healthsync.errors import StorageError
from healthsync.services.crypto import EncryptionKey, compute_content_hash
from healthsync.services.r2 import R2StorageClient
from healthsync.services.storage import APPLE_HEALTH_DATA_TYPE
from healthsync.services.tests.conftest import WALLET

PAYLOAD = b"HSE1" + b"\x02" * 48
CONTENT_HASH = compute_content_hash(PAYLOAD)
KEY = f"health/{WALLET.lower()}/{CONTENT_HASH}.bin"


def _client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)


@pytest.fixture
def s3() -> MagicMock:
    return MagicMock()


@pytest.fixture
def r2(settings: Settings, s3: MagicMock) -> R2StorageClient:
    return R2StorageClient(settings=settings, client=s3)


class TestR2Store:
    @pytest.mark.asyncio
    async def test_put_object(self, r2: R2StorageClient, s3: MagicMock) -> None:
        stored = await r2.store(PAYLOAD, APPLE_HEALTH_DATA_TYPE, {"tier": "GOLD"}, WALLET)

        assert stored.storj_uri == f"r2://test-bucket/{KEY}"
        assert stored.content_hash == CONTENT_HASH
        assert stored.size == len(PAYLOAD)

        kwargs = s3.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "test-bucket"
        assert kwargs["Key"] == KEY
        assert kwargs["Body"] == PAYLOAD
        assert kwargs["Metadata"] == {
            "tier": "GOLD",
            "dataType": APPLE_HEALTH_DATA_TYPE,
            "contentHash": CONTENT_HASH,
            "walletAddress": WALLET,
        }

    @pytest.mark.asyncio
    async def test_same_payload_same_key(self, r2: R2StorageClient, s3: MagicMock) -> None:
        first = await r2.store(PAYLOAD, APPLE_HEALTH_DATA_TYPE, {}, WALLET)
        second = await r2.store(PAYLOAD, APPLE_HEALTH_DATA_TYPE, {}, WALLET)
        assert first.storj_uri == second.storj_uri

    @pytest.mark.asyncio
    async def test_upload_error(self, r2: R2StorageClient, s3: MagicMock) -> None:
        s3.put_object.side_effect = _client_error("PutObject")
        with pytest.raises(StorageError, match="R2 upload failed"):
            await r2.store(PAYLOAD, APPLE_HEALTH_DATA_TYPE, {}, WALLET)


class TestR2ListAndRetrieve:
    @pytest.mark.asyncio
    async def test_list_filters_by_data_type(
        self, r2: R2StorageClient, s3: MagicMock, encryption_key: EncryptionKey
    ) -> None:
        modified = datetime(2026, 2, 23, tzinfo=timezone.utc)
        paginator = MagicMock()
        paginator.paginate.return_value = [{
            "Contents": [
                {"Key": KEY, "Size": 52, "LastModified": modified},
                {"Key": "health/other.bin", "Size": 10, "LastModified": modified},
            ],
        }]
        s3.get_paginator.return_value = paginator
        s3.head_object.side_effect = [
            {"Metadata": {"datatype": APPLE_HEALTH_DATA_TYPE, "contenthash": CONTENT_HASH, "tier": "GOLD"}},
            {"Metadata": {"datatype": "bloodwork"}},
        ]

        items = await r2.list(WALLET, encryption_key, data_type=APPLE_HEALTH_DATA_TYPE)

        paginator.paginate.assert_called_once_with(Bucket="test-bucket", Prefix=f"health/{WALLET.lower()}/")
        (item,) = items
        assert item.uri == f"r2://test-bucket/{KEY}"
        assert item.content_hash == CONTENT_HASH
        assert item.size == 52
        assert item.uploaded_at == modified
        assert item.tier == "GOLD"

    @pytest.mark.asyncio
    async def test_list_error(self, r2: R2StorageClient, s3: MagicMock, encryption_key: EncryptionKey) -> None:
        s3.get_paginator.side_effect = _client_error("ListObjectsV2")
        with pytest.raises(StorageError):
            await r2.list(WALLET, encryption_key)

    @pytest.mark.asyncio
    async def test_retrieve(self, r2: R2StorageClient, s3: MagicMock, encryption_key: EncryptionKey) -> None:
        s3.get_object.return_value = {"Body": io.BytesIO(PAYLOAD)}
        data = await r2.retrieve(f"r2://test-bucket/{KEY}", WALLET, encryption_key)
        assert data == PAYLOAD
        s3.get_object.assert_called_once_with(Bucket="test-bucket", Key=KEY)

    @pytest.mark.asyncio
    async def test_retrieve_foreign_uri(self, r2: R2StorageClient, encryption_key: EncryptionKey) -> None:
        with pytest.raises(StorageError, match="not in bucket"):
            await r2.retrieve("r2://elsewhere/key.bin", WALLET, encryption_key)

    @pytest.mark.asyncio
    async def test_retrieve_error(self, r2: R2StorageClient, s3: MagicMock, encryption_key: EncryptionKey) -> None:
        s3.get_object.side_effect = _client_error("GetObject")
        with pytest.raises(StorageError, match="download"):
            await r2.retrieve(f"r2://test-bucket/{KEY}", WALLET, encryption_key)
