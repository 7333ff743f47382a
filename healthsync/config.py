"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "healthsync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Amach API (storage + attestation) ---
    api_base_url: str = "https://app.amach.health"
    api_timeout_seconds: float = 60.0
    user_agent: str = "healthsync/0.1.0"

    # --- Storage backend ---
    storage_backend: str = "api"  # api | r2

    # --- Cloudflare R2 ---
    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket_name: str = "healthsync-data"
    r2_prefix: str = "health"

    # --- Local state / source ---
    state_path: str = ".healthsync/last_sync.json"
    export_path: str = ""  # Apple Health export.xml or JSON export
    timezone: str = ""  # IANA zone for calendar-day bucketing; device zone when empty

    # --- Sync windows ---
    default_lookback_days: int = 365
    background_min_interval_hours: int = 24
    background_lookback_days: int = 7

    # --- Wallet (dev capability) ---
    wallet_address: str = ""
    encryption_key: str = ""  # 64 hex chars, or any secret to be hashed
    wallet_signature: str = ""  # signature over the key derivation message

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "HEALTHSYNC_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
