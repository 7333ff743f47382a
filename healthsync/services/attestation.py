"""On-chain attestation of uploaded datasets.

An attestation binds a content hash to the dataset's date range and
completeness.  The contract stores the completeness score in basis points
(score × 100) and dates as unix seconds.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import IntEnum
from typing import Any

import httpx

from healthsync.config import Settings
from healthsync.errors import AttestationError
from healthsync.services.api import AmachApiClient
from healthsync.wearables.base import CompletenessTier
from healthsync.wearables.completeness import tier_for

logger = logging.getLogger("healthsync.attestation")


class HealthDataType(IntEnum):
    DEXA = 0
    BLOODWORK = 1
    APPLE_HEALTH = 2
    CGM = 3

    @property
    def display_name(self) -> str:
        return _DATA_TYPE_NAMES[self]


_DATA_TYPE_NAMES: dict[HealthDataType, str] = {
    HealthDataType.DEXA: "DEXA",
    HealthDataType.BLOODWORK: "Bloodwork",
    HealthDataType.APPLE_HEALTH: "Apple Health",
    HealthDataType.CGM: "CGM",
}


def _unix_seconds(value: date | datetime) -> int:
    if isinstance(value, datetime):
        ts = value if value.tzinfo is not None else value.astimezone()
    else:
        ts = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return int(ts.timestamp())


@dataclass(frozen=True)
class AttestationRequest:
    """Attestation of one uploaded dataset.

    Attributes:
        content_hash:       SHA-256 hex of the stored blob.
        data_type:          Kind of health data attested.
        start_date:         First day of the dataset.
        end_date:           Last day of the dataset.
        completeness_score: 0–100 completeness score.
        record_count:       Raw samples in the dataset.
        core_complete:      Core-metric gate met.
    """

    content_hash: str
    data_type: HealthDataType
    start_date: date | datetime
    end_date: date | datetime
    completeness_score: int
    record_count: int
    core_complete: bool

    def to_dict(self) -> dict:
        return {
            "contentHash": self.content_hash,
            "dataType": int(self.data_type),
            "startDate": _unix_seconds(self.start_date),
            "endDate": _unix_seconds(self.end_date),
            "completenessScore": int(self.completeness_score) * 100,
            "recordCount": self.record_count,
            "coreComplete": self.core_complete,
        }


@dataclass(frozen=True)
class AttestationReceipt:
    """Acknowledgement of a submitted attestation."""

    content_hash: str
    timestamp: datetime
    tx_hash: str | None = None


@dataclass(frozen=True)
class AttestationInfo:
    """An attestation as read back from chain.

    ``completeness_score`` is in basis points, as stored by the contract.
    """

    content_hash: str
    data_type: int
    start_date: datetime
    end_date: datetime
    completeness_score: int
    record_count: int
    core_complete: bool
    timestamp: datetime

    @property
    def score(self) -> int:
        return self.completeness_score // 100

    @property
    def tier(self) -> CompletenessTier:
        """Recomputed from score and core_complete; the wire value is never trusted."""
        return tier_for(self.score, self.core_complete)

    @property
    def data_type_name(self) -> str:
        try:
            return HealthDataType(self.data_type).display_name
        except ValueError:
            return "Unknown"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttestationInfo":
        def _ts(key: str) -> datetime:
            return datetime.fromtimestamp(float(data.get(key, 0)), tz=timezone.utc)

        return cls(
            content_hash=str(data["contentHash"]),
            data_type=int(data.get("dataType", -1)),
            start_date=_ts("startDate"),
            end_date=_ts("endDate"),
            completeness_score=int(data.get("completenessScore", 0)),
            record_count=int(data.get("recordCount", 0)),
            core_complete=bool(data.get("coreComplete", False)),
            timestamp=_ts("timestamp"),
        )


class AttestationClient(ABC):
    """Abstract attestation service."""

    @abstractmethod
    async def submit(self, request: AttestationRequest) -> AttestationReceipt:
        """Submit an attestation.

        Raises:
            AttestationError: If the submission fails.
        """

    @abstractmethod
    async def list(self, wallet_address: str) -> list[AttestationInfo]:
        """Return the wallet's attestations."""


class HttpAttestationClient(AmachApiClient, AttestationClient):
    """AttestationClient for the Amach backend.

    ``POST /api/attestations/submit`` submits, ``POST /api/attestations``
    lists by wallet.
    """

    error_class = AttestationError

    def __init__(
        self,
        wallet_address: str = "",
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(base_url=base_url, timeout=timeout, http_client=http_client, settings=settings)
        self._wallet_address = wallet_address

    async def submit(self, request: AttestationRequest) -> AttestationReceipt:
        body = request.to_dict()
        if self._wallet_address:
            body["userAddress"] = self._wallet_address
        response = await self._post("/api/attestations/submit", body)

        if isinstance(response, dict) and response.get("success") is False:
            error = str(response.get("error") or "Unknown error")
            raise AttestationError(f"Attestation rejected: {error}", user_message=error)

        data = response if isinstance(response, dict) else {}
        raw_ts = data.get("timestamp")
        timestamp = (
            datetime.fromtimestamp(float(raw_ts), tz=timezone.utc)
            if raw_ts is not None
            else datetime.now(timezone.utc)
        )
        receipt = AttestationReceipt(
            content_hash=request.content_hash,
            timestamp=timestamp,
            tx_hash=data.get("txHash"),
        )
        logger.info("Attested %s (score %d)", request.content_hash, request.completeness_score)
        return receipt

    async def list(self, wallet_address: str) -> list[AttestationInfo]:
        response = await self._post("/api/attestations", {"userAddress": wallet_address})
        if not isinstance(response, dict):
            raise AttestationError("Invalid response from server")
        try:
            return [AttestationInfo.from_dict(item) for item in response.get("attestations", [])]
        except (KeyError, TypeError, ValueError) as exc:
            raise AttestationError(f"Malformed attestation listing: {exc}") from exc
