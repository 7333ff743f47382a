"""Sync endpoints: trigger, retry, and observe the sync orchestrator."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from healthsync.dependencies import Background, Orchestrator
from healthsync.errors import SyncInProgressError
from healthsync.models.base import ErrorDetail
from healthsync.models.sync import (
    BackgroundSyncRead,
    LastSyncRead,
    SyncRequest,
    SyncResultRead,
    SyncStateRead,
)

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger("healthsync.routers.sync")


@router.post("", response_model=SyncResultRead, responses={409: {"model": ErrorDetail}})
async def start_sync(orchestrator: Orchestrator, body: SyncRequest | None = None) -> Any:
    """Run a full sync and return its result.

    Sync failures come back as 200 with ``success: false``; 409 means a sync
    is already running.
    """
    body = body or SyncRequest()
    try:
        result = await orchestrator.perform_full_sync(from_date=body.from_date, to_date=body.to_date)
    except SyncInProgressError as exc:
        logger.info("Rejected sync request: %s", exc.message)
        raise HTTPException(status_code=409, detail=exc.user_message) from exc
    return result.to_dict()


@router.post("/retry", response_model=SyncResultRead, responses={409: {"model": ErrorDetail}})
async def retry_sync(orchestrator: Orchestrator) -> Any:
    try:
        result = await orchestrator.retry_sync()
    except SyncInProgressError as exc:
        logger.info("Rejected sync request: %s", exc.message)
        raise HTTPException(status_code=409, detail=exc.user_message) from exc
    return result.to_dict()


@router.get("/state", response_model=SyncStateRead)
async def get_state(orchestrator: Orchestrator) -> Any:
    return orchestrator.state.to_dict()


@router.post("/dismiss", response_model=SyncStateRead)
async def dismiss(orchestrator: Orchestrator) -> Any:
    """Return a finished sync state to idle."""
    orchestrator.dismiss()
    return orchestrator.state.to_dict()


@router.get("/last", response_model=LastSyncRead)
async def get_last_sync(orchestrator: Orchestrator) -> Any:
    last = orchestrator.last_result
    return {
        "lastSyncResult": last.to_dict() if last else None,
        "lastSyncDate": orchestrator.last_sync_date,
        "lastFromDate": orchestrator.last_from_date,
    }


@router.post("/background", response_model=BackgroundSyncRead)
async def background_sync(background: Background, orchestrator: Orchestrator) -> Any:
    """Run the periodic sync if it is due.

    ``success`` is true when a recent sync already exists or the sync that
    ran succeeded.
    """
    success = await background.run()
    return {"success": success, "lastSyncDate": orchestrator.last_sync_date}
