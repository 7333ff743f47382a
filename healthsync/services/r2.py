"""Cloudflare R2 (S3-compatible) encrypted blob storage."""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from healthsync.config import Settings, get_settings
from healthsync.errors import StorageError
from healthsync.services.crypto import EncryptionKey, compute_content_hash
from healthsync.services.storage import StorageClient, StoredItem, StoreResult

logger = logging.getLogger("healthsync.r2")

_URI_SCHEME = "r2://"


def _build_client(s: Settings) -> Any:
    return boto3.client(
        "s3",
        endpoint_url=f"https://{s.r2_account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=s.r2_access_key_id,
        aws_secret_access_key=s.r2_secret_access_key,
        config=BotoConfig(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "standard"},
        ),
        region_name="auto",
    )


class R2StorageClient(StorageClient):
    """StorageClient backed by an R2 bucket.

    Object keys follow ``{prefix}/{wallet}/{content_hash}.bin``, so storing
    the same ciphertext twice overwrites one object.  Metadata travels as S3
    object metadata.
    """

    def __init__(self, settings: Settings | None = None, client: Any | None = None) -> None:
        """Initialize the client.

        Args:
            settings: Settings override.
            client:   Optional pre-configured boto3 S3 client (for testing).
        """
        self._settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = _build_client(self._settings)
        return self._client

    @property
    def bucket(self) -> str:
        return self._settings.r2_bucket_name

    def object_key(self, wallet_address: str, content_hash: str) -> str:
        safe_wallet = wallet_address.replace("/", "_").lower()
        return f"{self._settings.r2_prefix}/{safe_wallet}/{content_hash}.bin"

    def uri_for(self, key: str) -> str:
        return f"{_URI_SCHEME}{self.bucket}/{key}"

    def key_from_uri(self, uri: str) -> str:
        prefix = f"{_URI_SCHEME}{self.bucket}/"
        if not uri.startswith(prefix):
            raise StorageError(f"URI {uri} is not in bucket {self.bucket}")
        return uri[len(prefix):]

    async def store(
        self,
        payload: bytes,
        data_type: str,
        metadata: dict[str, str],
        wallet_address: str,
    ) -> StoreResult:
        content_hash = compute_content_hash(payload)
        key = self.object_key(wallet_address, content_hash)
        object_metadata = {
            **{k: str(v) for k, v in metadata.items()},
            "dataType": data_type,
            "contentHash": content_hash,
            "walletAddress": wallet_address,
        }

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=payload,
                ContentType="application/octet-stream",
                Metadata=object_metadata,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("R2 upload of %s failed: %s", key, exc)
            raise StorageError(f"R2 upload failed: {exc}") from exc

        logger.info("Uploaded %d bytes to R2 key=%s", len(payload), key)
        return StoreResult(storj_uri=self.uri_for(key), content_hash=content_hash, size=len(payload))

    async def list(
        self,
        wallet_address: str,
        encryption_key: EncryptionKey,
        data_type: str | None = None,
    ) -> list[StoredItem]:
        prefix = self.object_key(wallet_address, "").removesuffix(".bin")
        items: list[StoredItem] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    head = self.client.head_object(Bucket=self.bucket, Key=obj["Key"])
                    meta = {str(k): str(v) for k, v in (head.get("Metadata") or {}).items()}
                    item_type = meta.get("dataType") or meta.get("datatype", "")
                    if data_type is not None and item_type != data_type:
                        continue
                    items.append(StoredItem(
                        uri=self.uri_for(obj["Key"]),
                        content_hash=meta.get("contentHash") or meta.get("contenthash", ""),
                        size=int(obj.get("Size", 0)),
                        uploaded_at=obj.get("LastModified"),
                        data_type=item_type,
                        metadata=meta,
                    ))
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"R2 listing failed: {exc}") from exc
        return items

    async def retrieve(
        self,
        uri: str,
        wallet_address: str,
        encryption_key: EncryptionKey,
    ) -> bytes:
        key = self.key_from_uri(uri)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"R2 download of {key} failed: {exc}") from exc
