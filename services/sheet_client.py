"""HTTP client for the spreadsheet-backed script endpoint.

The script exposes one URL.  Reads are ``GET ?action=...``; every write is
a ``POST`` whose JSON body carries the action name, sent as ``text/plain``
so the script's web-app deployment accepts it without a CORS preflight.

Transport errors and 5xx answers are retried with exponential backoff.
After enough consecutive failures a circuit breaker stops calls for a
while.  The ``httpx.AsyncClient`` pool is opened and closed by the FastAPI
lifespan.

Reads raise so the caller can fall back to sample data.  Writes never
raise: :meth:`SheetClient.send` reports a :class:`SyncResult` and the sync
service decides whether to retry.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from config.settings import get_settings
from models.sync import RemoteMutation, SyncResult, SyncStatus

logger = logging.getLogger(__name__)

_client: SheetClient | None = None

MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.5  # seconds; attempt n waits base * 2**(n-1)
CIRCUIT_OPEN_THRESHOLD = 5
CIRCUIT_RESET_TIMEOUT = 60  # seconds until one probe request is let through


class SheetClientError(Exception):
    """The script answered with a non-2xx status or an unreadable body."""

    def __init__(self, status_code: int, detail: str, url: str = ""):
        self.status_code = status_code
        self.detail = detail
        self.url = url
        super().__init__(f"Sheet API {status_code}: {detail} ({url})")


class CircuitOpenError(Exception):
    """Calls are suspended after repeated failures."""

    def __init__(self):
        super().__init__("Sheet backend unavailable (circuit open)")


@dataclass
class CircuitBreaker:
    """Counts consecutive failures; open once ``threshold`` is reached."""

    threshold: int = CIRCUIT_OPEN_THRESHOLD
    reset_after: float = CIRCUIT_RESET_TIMEOUT
    failures: int = 0
    opened_at: float | None = None

    @property
    def is_open(self) -> bool:
        if self.failures < self.threshold:
            return False
        if self.opened_at is not None and time.monotonic() - self.opened_at >= self.reset_after:
            logger.info("Sheet circuit half-open, letting a probe request through")
            return False
        return True

    def succeeded(self) -> None:
        if self.failures:
            logger.info("Sheet backend answering again after %d failures", self.failures)
        self.failures = 0
        self.opened_at = None

    def failed(self) -> None:
        self.failures += 1
        if self.failures < self.threshold:
            return
        if self.opened_at is None:
            logger.warning(
                "Sheet circuit OPEN after %d failures; pausing calls for %ds",
                self.failures, self.reset_after,
            )
        else:
            logger.warning("Sheet probe failed; circuit open again for %ds", self.reset_after)
        # a failed probe restarts the open window
        self.opened_at = time.monotonic()


def _backoff(attempt: int) -> float:
    return RETRY_BASE_DELAY * (2 ** (attempt - 1))


def _snippet(response: httpx.Response, limit: int) -> str:
    return response.text[:limit] if response.text else f"HTTP {response.status_code}"


class SheetClient:
    """Async client for the spreadsheet script."""

    def __init__(self) -> None:
        settings = get_settings()
        self._url = settings.sheet_api_url
        self._timeout = settings.sheet_api_timeout
        self._http: httpx.AsyncClient | None = None
        self.breaker = CircuitBreaker()

    async def start(self) -> None:
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            # the script answers with a redirect to its content host
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        logger.info("SheetClient started — url=%s", self._url)

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("SheetClient closed")

    @property
    def circuit_open(self) -> bool:
        return self.breaker.is_open

    # ── Reads ────────────────────────────────────────────────

    async def fetch_initial_data(self) -> dict[str, Any]:
        """Everything the script holds: the ``data`` object of ``getInitialData``.

        The ``t`` parameter is a cache-buster.  Raises
        :class:`SheetClientError`, :class:`CircuitOpenError` or an
        ``httpx.TransportError``.
        """
        response, _ = await self._call(
            "GET", params={"action": "getInitialData", "t": int(time.time() * 1000)}
        )
        try:
            body = response.json() if response.text else {}
        except ValueError:
            raise SheetClientError(response.status_code, "response is not JSON", self._url) from None
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise SheetClientError(response.status_code, "getInitialData response has no data object", self._url)
        return data

    # ── Writes ───────────────────────────────────────────────

    async def send(self, mutation: RemoteMutation) -> SyncResult:
        """POST one mutation; the outcome is returned, never raised."""
        t0 = time.monotonic()
        try:
            _, attempts = await self._call("POST", body=mutation.body())
        except CircuitOpenError as exc:
            return SyncResult(action=mutation.action, status=SyncStatus.FAILED, detail=str(exc), attempts=0)
        except httpx.TimeoutException as exc:
            return self._result(mutation, SyncStatus.TIMEOUT, t0, MAX_RETRIES, detail=str(exc) or "timeout")
        except httpx.TransportError as exc:
            return self._result(mutation, SyncStatus.FAILED, t0, MAX_RETRIES, detail=str(exc))
        except SheetClientError as exc:
            attempts = 1 if exc.status_code < 500 else MAX_RETRIES
            return self._result(
                mutation, SyncStatus.FAILED, t0, attempts,
                detail=exc.detail, status_code=exc.status_code,
            )
        return self._result(mutation, SyncStatus.OK, t0, attempts, status_code=200)

    # ── Internals ────────────────────────────────────────────

    async def _call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> tuple[httpx.Response, int]:
        """One logical request: returns the 2xx response and the attempts it took.

        4xx is raised at once; 5xx and transport errors are retried up to
        ``MAX_RETRIES`` times and the last error is raised.
        """
        if self.breaker.is_open:
            raise CircuitOpenError()
        http = self._ensure_started()
        action = (params or body or {}).get("action", "?")

        attempt = 0
        while True:
            attempt += 1
            t0 = time.monotonic()
            try:
                if method == "GET":
                    response = await http.get(self._url, params=params)
                else:
                    response = await http.post(
                        self._url,
                        content=json.dumps(body, ensure_ascii=False),
                        headers={"Content-Type": "text/plain;charset=utf-8"},
                    )
            except httpx.TransportError as exc:
                self.breaker.failed()
                logger.warning(
                    "%s %s failed after %.0fms: %s [attempt %d/%d]",
                    method, action, (time.monotonic() - t0) * 1000, exc, attempt, MAX_RETRIES,
                )
                if attempt >= MAX_RETRIES:
                    raise
            else:
                logger.info(
                    "%s %s → %d (%.0fms)",
                    method, action, response.status_code, (time.monotonic() - t0) * 1000,
                )
                if response.status_code < 500:
                    # a 4xx still proves the script is up
                    self.breaker.succeeded()
                    if response.status_code >= 400:
                        raise SheetClientError(
                            response.status_code, _snippet(response, 500), str(response.url)
                        )
                    return response, attempt
                self.breaker.failed()
                if attempt >= MAX_RETRIES:
                    raise SheetClientError(
                        response.status_code, _snippet(response, 200), str(response.url)
                    )
            await asyncio.sleep(_backoff(attempt))

    @staticmethod
    def _result(
        mutation: RemoteMutation,
        status: SyncStatus,
        t0: float,
        attempts: int,
        detail: str = "",
        status_code: int | None = None,
    ) -> SyncResult:
        result = SyncResult(
            action=mutation.action,
            status=status,
            status_code=status_code,
            detail=detail,
            attempts=attempts,
            elapsed_ms=(time.monotonic() - t0) * 1000,
        )
        if not result.ok:
            logger.warning("Sync %s %s: %s", mutation.action, status.value, detail)
        return result

    def _ensure_started(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("SheetClient not started — call await client.start() first")
        return self._http


def get_sheet_client() -> SheetClient:
    """Return the module-level SheetClient singleton (create if needed)."""
    global _client
    if _client is None:
        _client = SheetClient()
    return _client
