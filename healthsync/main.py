"""healthsync API: FastAPI application entry point.

Run locally:
    uvicorn healthsync.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta, tzinfo
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

from fastapi import FastAPI

from healthsync.config import Settings, get_settings
from healthsync.routers import health, sync
from healthsync.services.attestation import HttpAttestationClient
from healthsync.services.storage import build_storage_client
from healthsync.services.wallet import SettingsKeyProvider
from healthsync.sync.orchestrator import SyncOrchestrator
from healthsync.sync.scheduler import BackgroundSync
from healthsync.sync.state import LastSyncStore
from healthsync.wearables.adapters.apple_health import AppleHealthExportSource
from healthsync.wearables.aggregator import DailyAggregator

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("healthsync")


def _zone(settings: Settings) -> tzinfo | None:
    return ZoneInfo(settings.timezone) if settings.timezone else None


def build_orchestrator(settings: Settings) -> SyncOrchestrator:
    """Wire a SyncOrchestrator from settings."""
    tz = _zone(settings)
    return SyncOrchestrator(
        source=AppleHealthExportSource(settings.export_path or None, tz=tz),
        storage=build_storage_client(settings),
        attestation=HttpAttestationClient(wallet_address=settings.wallet_address, settings=settings),
        key_provider=SettingsKeyProvider(settings),
        store=LastSyncStore(settings.state_path),
        aggregator=DailyAggregator(tz=tz),
        lookback_days=settings.default_lookback_days,
    )


def build_background_sync(settings: Settings, orchestrator: SyncOrchestrator) -> BackgroundSync:
    return BackgroundSync(
        orchestrator,
        SettingsKeyProvider(settings),
        min_interval=timedelta(hours=settings.background_min_interval_hours),
        lookback_days=settings.background_lookback_days,
    )


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting healthsync API v%s [%s], storage=%s",
        settings.app_version,
        settings.environment,
        settings.storage_backend,
    )
    orchestrator = build_orchestrator(settings)
    app.state.orchestrator = orchestrator
    app.state.background_sync = build_background_sync(settings, orchestrator)
    yield
    app.state.orchestrator = None
    app.state.background_sync = None
    logger.info("healthsync API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="healthsync API",
        description=(
            "Biometric sync pipeline: daily aggregation, completeness scoring, "
            "encrypted upload, and on-chain attestation."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(sync.router, prefix=v1_prefix)

    return app


app = create_app()
