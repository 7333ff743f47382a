"""Health check endpoint. Public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from healthsync.dependencies import AppSettings

router = APIRouter(tags=["system"])
logger = logging.getLogger("healthsync.health")


@router.get("/health")
async def health_check(request: Request, settings: AppSettings) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also reports whether the orchestrator is wired and whether a sync is running.
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        logger.warning("Health check: orchestrator not initialised")

    return {
        "status": "healthy" if orchestrator is not None else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "syncing": bool(orchestrator and orchestrator.is_syncing),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
