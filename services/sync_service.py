"""Background delivery of spreadsheet writes with an ordered retry queue.

Writes are queued in the order the state store produced them and sent one
at a time.  A failed or timed-out write stays at the head of the queue and
blocks the ones behind it until a retry succeeds, so the backend sees the
same order the local state did.  Writes the script rejects outright (4xx)
are dropped from the queue and counted as rejected.

The queue is bounded; when it is full the oldest pending write is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Iterable

from config.settings import get_settings
from models.sync import RemoteMutation, SyncReport, SyncResult
from services.sheet_client import SheetClient, get_sheet_client

logger = logging.getLogger(__name__)


class SyncService:
    def __init__(
        self,
        client: SheetClient,
        queue_limit: int = 500,
        batch_delay: float = 0.3,
    ) -> None:
        self._client = client
        self._queue: deque[RemoteMutation] = deque()
        self._queue_limit = max(1, queue_limit)
        self._batch_delay = batch_delay
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

        self._sent = 0
        self._failed = 0
        self._rejected = 0
        self._dropped = 0
        self._last_error: str | None = None
        self._last_success_at: float | None = None

    # -- public API ----------------------------------------------------------

    def submit(self, mutations: Iterable[RemoteMutation]) -> None:
        """Queue writes and start delivering them without waiting."""
        self.enqueue(mutations)
        task = asyncio.get_running_loop().create_task(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def enqueue(self, mutations: Iterable[RemoteMutation]) -> None:
        for mutation in mutations:
            if len(self._queue) >= self._queue_limit:
                dropped = self._queue.popleft()
                self._dropped += 1
                logger.error(
                    "Sync queue full (%d) — dropping oldest write %s",
                    self._queue_limit, dropped.action,
                )
            self._queue.append(mutation)

    async def flush(self) -> list[SyncResult]:
        """Send queued writes in order until the queue is empty or one fails."""
        results: list[SyncResult] = []
        async with self._lock:
            while self._queue:
                mutation = self._queue[0]
                result = await self._client.send(mutation)
                results.append(result)

                if result.ok:
                    self._pop(mutation)
                    self._sent += 1
                    self._last_success_at = time.time()
                    if (
                        mutation.action == "importStudents"
                        and self._queue
                        and self._queue[0].action == "importStudents"
                    ):
                        await asyncio.sleep(self._batch_delay)
                    continue

                self._last_error = f"{result.action}: {result.status.value} {result.detail}".strip()
                if result.status_code is not None and 400 <= result.status_code < 500:
                    self._pop(mutation)
                    self._rejected += 1
                    logger.error("Sheet backend rejected %s: %s", result.action, result.detail)
                    continue

                self._failed += 1
                logger.warning(
                    "Sync paused with %d pending writes (%s)",
                    len(self._queue), self._last_error,
                )
                break
        return results

    async def retry(self) -> SyncReport:
        """Re-send pending writes now and report the outcome."""
        if self._queue:
            logger.info("Retrying %d pending writes", len(self._queue))
            await self.flush()
        return self.status()

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def shutdown(self) -> int:
        """Finish in-flight deliveries, try the paused queue once more.

        Returns the number of writes still unsent; they are lost with the
        process.
        """
        await self.drain()
        await self.retry()
        if self._queue:
            logger.error(
                "Shutting down with %d unsent writes: %s",
                len(self._queue), ", ".join(m.action for m in self._queue),
            )
        return len(self._queue)

    def status(self) -> SyncReport:
        return SyncReport(
            pending=len(self._queue),
            sent=self._sent,
            failed=self._failed,
            rejected=self._rejected,
            dropped=self._dropped,
            circuit_open=self._client.circuit_open,
            last_error=self._last_error,
            last_success_at=self._last_success_at,
            pending_actions=[m.action for m in self._queue],
        )

    @property
    def pending(self) -> int:
        return len(self._queue)

    # -- internals -----------------------------------------------------------

    def _pop(self, mutation: RemoteMutation) -> None:
        # the head may have been dropped by a full queue while it was in flight
        if self._queue and self._queue[0] is mutation:
            self._queue.popleft()


# ── Module-level Singleton ───────────────────────────────────

_service: SyncService | None = None


def get_sync_service() -> SyncService:
    """Get the singleton sync service bound to the shared sheet client."""
    global _service
    if _service is None:
        settings = get_settings()
        _service = SyncService(
            client=get_sheet_client(),
            queue_limit=settings.sync_queue_limit,
            batch_delay=settings.import_batch_delay,
        )
    return _service


# ── Background Retry Task ────────────────────────────────────


async def periodic_retry(interval_seconds: int = 60) -> None:
    """Background task that re-sends pending writes.

    Should be started as an ``asyncio.Task`` in the FastAPI lifespan.
    """
    service = get_sync_service()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await service.retry()
        except Exception:
            logger.exception("Sync retry failed")
