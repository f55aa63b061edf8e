"""Liveness and data-source check."""

from __future__ import annotations

from fastapi import APIRouter

from services.state_store import get_state_store
from services.sync_service import get_sync_service

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    store = get_state_store()
    return {
        "status": "healthy",
        "dataSource": store.loaded_from,
        "students": len(store.state.students),
        "pendingWrites": get_sync_service().pending,
    }
