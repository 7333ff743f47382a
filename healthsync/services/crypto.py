"""Payload encryption keyed by the wallet-derived encryption key.

Envelope layout::

    b"HSE1" | nonce (12 bytes) | AES-256-GCM ciphertext + tag

The nonce is synthetic: the first 12 bytes of HMAC-SHA256(key, plaintext).
Identical plaintexts therefore encrypt to identical blobs under the same key,
which keeps re-syncing unchanged data idempotent down to the ciphertext.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import string
import time
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from healthsync.errors import EncodingError

logger = logging.getLogger("healthsync.crypto")

ENVELOPE_MAGIC = b"HSE1"
_NONCE_SIZE = 12

#: Message the wallet signs to derive the encryption key (must match the web app).
KEY_DERIVATION_MESSAGE = (
    "Sign this message to derive your encryption key.\n"
    "\n"
    "This key is used to encrypt your health data before storage.\n"
    "\n"
    "It will NOT be sent to our servers.\n"
    "Timestamp: {timestamp}"
)


@dataclass(frozen=True)
class EncryptionKey:
    """Wallet-bound encryption key.

    Attributes:
        wallet_address: Wallet the key belongs to.
        encryption_key: Hex key material (SHA-256 of the signature).
        signature:      Signature the key was derived from.
        timestamp:      Milliseconds since epoch embedded in the signed message.
    """

    wallet_address: str
    encryption_key: str
    signature: str = ""
    timestamp: int = 0

    def to_dict(self) -> dict:
        return {
            "walletAddress": self.wallet_address,
            "encryptionKey": self.encryption_key,
            "signature": self.signature,
            "timestamp": self.timestamp,
        }


def key_derivation_message(timestamp: int | None = None) -> str:
    """Return the message to sign; timestamp defaults to now in milliseconds."""
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return KEY_DERIVATION_MESSAGE.format(timestamp=timestamp)


def derive_encryption_key(signature: str) -> str:
    """Derive hex key material from a wallet signature (SHA-256 of its UTF-8 bytes)."""
    if not signature:
        raise EncodingError("Cannot derive an encryption key from an empty signature")
    return hashlib.sha256(signature.encode("utf-8")).hexdigest()


def compute_content_hash(data: bytes) -> str:
    """Return hex-encoded SHA-256 hash of the data."""
    return hashlib.sha256(data).hexdigest()


def _key_bytes(key: EncryptionKey | str | None) -> bytes:
    material = key.encryption_key if isinstance(key, EncryptionKey) else key
    if not material:
        raise EncodingError("Missing encryption key")
    if len(material) == 64 and all(c in string.hexdigits for c in material):
        return bytes.fromhex(material)
    return hashlib.sha256(material.encode("utf-8")).digest()


def encrypt_payload(plaintext: bytes, key: EncryptionKey | str | None) -> bytes:
    """Encrypt plaintext into a deterministic AES-256-GCM envelope.

    Raises:
        EncodingError: If the key is missing.
    """
    raw_key = _key_bytes(key)
    nonce = hmac.new(raw_key, plaintext, hashlib.sha256).digest()[:_NONCE_SIZE]
    envelope = ENVELOPE_MAGIC + nonce + AESGCM(raw_key).encrypt(nonce, plaintext, ENVELOPE_MAGIC)
    logger.debug("Encrypted %d bytes into %d-byte envelope", len(plaintext), len(envelope))
    return envelope


def decrypt_payload(blob: bytes, key: EncryptionKey | str | None) -> bytes:
    """Decrypt an envelope produced by encrypt_payload.

    Raises:
        EncodingError: If the key is missing, the envelope is malformed, or
            authentication fails.
    """
    raw_key = _key_bytes(key)
    header = len(ENVELOPE_MAGIC) + _NONCE_SIZE
    if len(blob) < header or not blob.startswith(ENVELOPE_MAGIC):
        raise EncodingError("Not a healthsync encrypted payload")
    nonce = blob[len(ENVELOPE_MAGIC):header]
    try:
        return AESGCM(raw_key).decrypt(nonce, blob[header:], ENVELOPE_MAGIC)
    except InvalidTag as exc:
        raise EncodingError("Payload authentication failed (wrong key or corrupted data)") from exc
