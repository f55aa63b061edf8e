"""Remote sync payloads and outcomes."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from models.base import CamelModel


class SyncStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    TIMEOUT = "timeout"


class RemoteMutation(BaseModel):
    """One POST to the sheet backend: ``{"action": ..., **payload}``."""

    action: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: float = Field(default_factory=time.time)

    def body(self) -> dict[str, Any]:
        return {"action": self.action, **self.payload}


class SyncResult(BaseModel):
    action: str
    status: SyncStatus
    status_code: int | None = None
    detail: str = ""
    attempts: int = 1
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.OK


class SyncReport(CamelModel):
    """Snapshot of the sync queue for ``GET /api/sync/status``."""

    pending: int = 0
    sent: int = 0
    failed: int = 0
    rejected: int = 0
    dropped: int = 0
    circuit_open: bool = False
    last_error: str | None = None
    last_success_at: float | None = None
    pending_actions: list[str] = Field(default_factory=list)
