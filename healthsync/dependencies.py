"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from healthsync.config import Settings, get_settings
from healthsync.sync.orchestrator import SyncOrchestrator
from healthsync.sync.scheduler import BackgroundSync


async def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Return the process-wide orchestrator created in the lifespan hook."""
    orchestrator: SyncOrchestrator | None = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Sync service is not ready")
    return orchestrator


async def get_background_sync(request: Request) -> BackgroundSync:
    background: BackgroundSync | None = getattr(request.app.state, "background_sync", None)
    if background is None:
        raise HTTPException(status_code=503, detail="Sync service is not ready")
    return background


# Annotated shortcuts for route signatures
Orchestrator = Annotated[SyncOrchestrator, Depends(get_orchestrator)]
Background = Annotated[BackgroundSync, Depends(get_background_sync)]
AppSettings = Annotated[Settings, Depends(get_settings)]
