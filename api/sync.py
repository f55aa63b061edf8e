"""Sync queue status and manual retry."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_viewer
from models.sync import SyncReport
from services.sync_service import get_sync_service

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/status", response_model=SyncReport)
async def sync_status(viewer=Depends(get_viewer)):
    return get_sync_service().status()


@router.post("/retry", response_model=SyncReport)
async def sync_retry(viewer=Depends(get_viewer)):
    """Re-send pending writes now instead of waiting for the periodic task."""
    return await get_sync_service().retry()
