"""Wallet capability: where the sync gets its encryption key from.

The orchestrator only needs to know whether a wallet is connected and to read
its EncryptionKey.  Signing and key storage live outside this repository.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from healthsync.config import Settings, get_settings
from healthsync.services.crypto import EncryptionKey, derive_encryption_key

logger = logging.getLogger("healthsync.wallet")


class KeyProvider(ABC):
    """Abstract source of the wallet-bound encryption key."""

    @property
    def is_connected(self) -> bool:
        return self.get_encryption_key() is not None

    @abstractmethod
    def get_encryption_key(self) -> EncryptionKey | None:
        """Return the current key, or None when no wallet is connected."""


class StaticKeyProvider(KeyProvider):
    """Holds one key in memory.  ``disconnect()`` drops it."""

    def __init__(self, key: EncryptionKey | None = None) -> None:
        self._key = key

    def connect(self, key: EncryptionKey) -> None:
        self._key = key

    def disconnect(self) -> None:
        self._key = None

    def get_encryption_key(self) -> EncryptionKey | None:
        return self._key


class SettingsKeyProvider(KeyProvider):
    """Reads the wallet from Settings.

    Uses ``encryption_key`` when set, otherwise derives the key from
    ``wallet_signature``.  Without a wallet address there is no key.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def get_encryption_key(self) -> EncryptionKey | None:
        s = self._settings
        if not s.wallet_address:
            return None
        if s.encryption_key:
            return EncryptionKey(
                wallet_address=s.wallet_address,
                encryption_key=s.encryption_key,
                signature=s.wallet_signature,
            )
        if s.wallet_signature:
            return EncryptionKey(
                wallet_address=s.wallet_address,
                encryption_key=derive_encryption_key(s.wallet_signature),
                signature=s.wallet_signature,
            )
        logger.warning("Wallet %s configured without a key or signature", s.wallet_address)
        return None
