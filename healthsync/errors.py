"""Error taxonomy for the healthsync pipeline.

Only I/O steps (fetch, encrypt, upload, attest) raise these.  The pure
aggregation / scoring / manifest steps degrade instead of failing.

Every error carries a single-line ``user_message`` that is safe to show in a
UI; the full ``message`` may contain protocol detail and is only logged.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for every failure that ends a sync attempt."""

    default_user_message = "Sync failed. Please try again."

    def __init__(self, message: str, user_message: str | None = None) -> None:
        self.message = message
        lines = (user_message or "").strip().splitlines()
        self.user_message = lines[0].strip() if lines else self.default_user_message
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to the API error response format."""
        return {
            "error": {
                "code": self.__class__.__name__.replace("Error", "").lower(),
                "message": self.user_message,
            }
        }


class SourceUnavailableError(SyncError):
    """The sample source cannot be reached or access was revoked."""

    default_user_message = "Health data is unavailable. Check data access permissions."


class NoDataError(SyncError):
    """The sample source returned nothing for the requested range."""

    default_user_message = "No health data available to sync"


class EncodingError(SyncError):
    """Serialization or encryption failed (e.g. the wallet key is missing)."""

    default_user_message = "Could not prepare health data for upload"


class NetworkError(SyncError):
    """A remote collaborator (storage or attestation) failed.  Transient."""

    default_user_message = "Network error. Please retry the sync."

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, user_message or self.default_user_message)
        self.status_code = status_code


class StorageError(NetworkError):
    """Encrypted blob upload / listing / retrieval failed."""

    default_user_message = "Upload failed. Please retry the sync."


class AttestationError(NetworkError):
    """Submitting or reading an attestation failed."""

    default_user_message = "Attestation failed. Please retry the sync."


class SyncInProgressError(SyncError):
    """A sync was requested while another one is still running."""

    default_user_message = "A sync is already in progress"
