"""Shared fixtures for service client tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from healthsync.config import Settings
from healthsync.services.crypto import EncryptionKey, derive_encryption_key

WALLET = "0xAbC0000000000000000000000000000000000001"
API_BASE = "https://api.test"


def json_response(status_code: int = 200, payload: Any = None) -> httpx.Response:
    """Build a real httpx.Response carrying a JSON body."""
    return httpx.Response(status_code, json=payload if payload is not None else {})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_base_url=API_BASE,
        api_timeout_seconds=5.0,
        r2_bucket_name="test-bucket",
        r2_prefix="health",
        wallet_address=WALLET,
    )


@pytest.fixture
def encryption_key() -> EncryptionKey:
    return EncryptionKey(
        wallet_address=WALLET,
        encryption_key=derive_encryption_key("0xsig"),
        signature="0xsig",
        timestamp=1_740_000_000_000,
    )


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """A mock httpx.AsyncClient whose post() returns an empty 200 response."""
    client = MagicMock()
    client.post = AsyncMock(return_value=json_response(200, {}))
    return client
