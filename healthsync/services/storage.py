"""Encrypted blob storage.

The orchestrator encrypts payloads locally; a StorageClient only moves
opaque bytes plus string metadata.  Two backends:

    HttpStorageClient - the Amach backend's ``/api/storj`` route (Storj)
    R2StorageClient   - Cloudflare R2 via boto3 (see ``healthsync.services.r2``)
"""

from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from healthsync.config import Settings, get_settings
from healthsync.errors import StorageError
from healthsync.services.api import AmachApiClient
from healthsync.services.crypto import EncryptionKey, compute_content_hash

logger = logging.getLogger("healthsync.storage")

#: Data type tag for the full Apple Health payload.
APPLE_HEALTH_DATA_TYPE = "apple-health-full-export"


@dataclass(frozen=True)
class StoreResult:
    """Where a blob landed.

    Attributes:
        storj_uri:    Backend URI of the stored blob.
        content_hash: SHA-256 hex of the stored bytes.
        size:         Stored size in bytes, when reported.
    """

    storj_uri: str
    content_hash: str
    size: int | None = None


@dataclass(frozen=True)
class StoredItem:
    """One blob listed from storage."""

    uri: str
    content_hash: str
    size: int
    uploaded_at: datetime | None
    data_type: str
    metadata: dict[str, str] = field(default_factory=dict)

    def _meta(self, key: str) -> str | None:
        # Some backends lower-case metadata keys.
        return self.metadata.get(key) or self.metadata.get(key.lower())

    @property
    def tier(self) -> str | None:
        return self._meta("tier")

    @property
    def metrics_count(self) -> int | None:
        value = self._meta("metricsCount")
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    @property
    def date_range(self) -> tuple[str, str] | None:
        value = self._meta("dateRange")
        if not value:
            return None
        parts = value.split("_")
        if len(parts) != 2:
            return None
        return parts[0], parts[1]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredItem":
        uploaded_raw = data.get("uploadedAt")
        uploaded_at = (
            datetime.fromtimestamp(float(uploaded_raw) / 1000, tz=timezone.utc)
            if uploaded_raw is not None
            else None
        )
        return cls(
            uri=str(data["uri"]),
            content_hash=str(data.get("contentHash", "")),
            size=int(data.get("size", 0)),
            uploaded_at=uploaded_at,
            data_type=str(data.get("dataType", "")),
            metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
        )


class StorageClient(ABC):
    """Abstract encrypted blob store."""

    @abstractmethod
    async def store(
        self,
        payload: bytes,
        data_type: str,
        metadata: dict[str, str],
        wallet_address: str,
    ) -> StoreResult:
        """Store an encrypted payload.

        Raises:
            StorageError: If the upload fails.
        """

    @abstractmethod
    async def list(
        self,
        wallet_address: str,
        encryption_key: EncryptionKey,
        data_type: str | None = None,
    ) -> list[StoredItem]:
        """List stored blobs for a wallet, optionally filtered by data type."""

    @abstractmethod
    async def retrieve(
        self,
        uri: str,
        wallet_address: str,
        encryption_key: EncryptionKey,
    ) -> bytes:
        """Fetch a stored blob's bytes."""


# ---------------------------------------------------------------------------
# HTTP backend (/api/storj)
# ---------------------------------------------------------------------------


class HttpStorageClient(AmachApiClient, StorageClient):
    """StorageClient talking to ``POST {api_base_url}/api/storj``.

    Every call sends ``{"action": "storage/<verb>", "userAddress": ...}`` and
    receives ``{"success": bool, "result": ..., "error": str | null}``.
    """

    error_class = StorageError
    _PATH = "/api/storj"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(base_url=base_url, timeout=timeout, http_client=http_client, settings=settings)

    async def _call(self, body: dict[str, Any]) -> Any:
        envelope = await self._post(self._PATH, body)
        if not isinstance(envelope, dict):
            raise StorageError("Invalid response from server")
        if not envelope.get("success"):
            error = str(envelope.get("error") or "Unknown error")
            raise StorageError(f"{body['action']} failed: {error}", user_message=error)
        return envelope.get("result")

    async def store(
        self,
        payload: bytes,
        data_type: str,
        metadata: dict[str, str],
        wallet_address: str,
    ) -> StoreResult:
        result = await self._call({
            "action": "storage/store",
            "userAddress": wallet_address,
            "data": base64.b64encode(payload).decode("ascii"),
            "encoding": "base64",
            "dataType": data_type,
            "options": {"metadata": dict(metadata)},
        })
        if not isinstance(result, dict) or not result.get("storjUri"):
            raise StorageError("Storage response is missing storjUri")

        stored = StoreResult(
            storj_uri=str(result["storjUri"]),
            content_hash=str(result.get("contentHash") or compute_content_hash(payload)),
            size=int(result["size"]) if result.get("size") is not None else len(payload),
        )
        logger.info("Stored %d bytes for %s at %s", len(payload), wallet_address, stored.storj_uri)
        return stored

    async def list(
        self,
        wallet_address: str,
        encryption_key: EncryptionKey,
        data_type: str | None = None,
    ) -> list[StoredItem]:
        body: dict[str, Any] = {
            "action": "storage/list",
            "userAddress": wallet_address,
            "encryptionKey": encryption_key.to_dict(),
        }
        if data_type is not None:
            body["dataType"] = data_type
        result = await self._call(body)
        try:
            return [StoredItem.from_dict(item) for item in (result or [])]
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Malformed storage listing: {exc}") from exc

    async def retrieve(
        self,
        uri: str,
        wallet_address: str,
        encryption_key: EncryptionKey,
    ) -> bytes:
        result = await self._call({
            "action": "storage/retrieve",
            "userAddress": wallet_address,
            "encryptionKey": encryption_key.to_dict(),
            "storjUri": uri,
        })
        encoded = result.get("data") if isinstance(result, dict) else result
        if not isinstance(encoded, str):
            raise StorageError(f"Storage response for {uri} carries no data")
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise StorageError(f"Stored data for {uri} is not valid base64") from exc


def build_storage_client(settings: Settings | None = None) -> StorageClient:
    """Return the StorageClient selected by ``Settings.storage_backend``."""
    s = settings or get_settings()
    backend = s.storage_backend.lower()
    if backend == "r2":
        from healthsync.services.r2 import R2StorageClient

        return R2StorageClient(settings=s)
    if backend == "api":
        return HttpStorageClient(settings=s)
    raise ValueError(f"Unknown storage backend '{s.storage_backend}'. Available: ['api', 'r2']")
