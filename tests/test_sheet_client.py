"""Tests for services/sheet_client.py — HTTP client for the spreadsheet script."""

import json

import pytest
from unittest.mock import AsyncMock, patch, MagicMock

import httpx

from models.sync import RemoteMutation, SyncStatus
from services.sheet_client import (
    SheetClient,
    SheetClientError,
    CircuitOpenError,
    CIRCUIT_OPEN_THRESHOLD,
    CircuitBreaker,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    """Create a fresh SheetClient for each test (not the global singleton)."""
    with patch("services.sheet_client.get_settings") as mock_settings:
        s = MagicMock()
        s.sheet_api_url = "https://script.example.com/exec"
        s.sheet_api_timeout = 15
        mock_settings.return_value = s
        yield SheetClient()


def _ok_response(data=None):
    r = MagicMock()
    r.status_code = 200
    r.text = json.dumps(data or {"status": "success"})
    r.json.return_value = data or {"status": "success"}
    return r


def _error_response(status=500):
    r = MagicMock()
    r.status_code = status
    r.text = "Server Error"
    r.url = "https://script.example.com/exec"
    return r


def _mutation():
    return RemoteMutation(action="deleteHistory", payload={"id": "s1"})


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_start_and_close(client):
    await client.start()
    assert client._http is not None
    await client.close()
    assert client._http is None


@pytest.mark.asyncio
async def test_ensure_started_raises_without_start(client):
    with pytest.raises(RuntimeError, match="not started"):
        client._ensure_started()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_initial_data_returns_data_object(client):
    await client.start()
    client._http.get = AsyncMock(return_value=_ok_response({"status": "success", "data": {"students": []}}))

    data = await client.fetch_initial_data()

    assert data == {"students": []}
    params = client._http.get.call_args.kwargs["params"]
    assert params["action"] == "getInitialData"
    assert "t" in params
    await client.close()


@pytest.mark.asyncio
async def test_fetch_initial_data_without_data_raises(client):
    await client.start()
    client._http.get = AsyncMock(return_value=_ok_response({"status": "error"}))

    with pytest.raises(SheetClientError):
        await client.fetch_initial_data()
    await client.close()


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_send_posts_text_plain_json(client):
    await client.start()
    client._http.post = AsyncMock(return_value=_ok_response())

    result = await client.send(_mutation())

    assert result.status is SyncStatus.OK
    assert result.attempts == 1
    kwargs = client._http.post.call_args.kwargs
    assert kwargs["headers"]["Content-Type"].startswith("text/plain")
    assert json.loads(kwargs["content"]) == {"action": "deleteHistory", "id": "s1"}
    await client.close()


@pytest.mark.asyncio
async def test_send_retries_5xx_then_succeeds(client):
    await client.start()
    client._http.post = AsyncMock(side_effect=[_error_response(500), _ok_response()])

    with patch("services.sheet_client.RETRY_BASE_DELAY", 0):
        result = await client.send(_mutation())

    assert result.ok
    assert result.attempts == 2
    assert client.breaker.failures == 0
    await client.close()


@pytest.mark.asyncio
async def test_send_timeout_reports_timeout(client):
    await client.start()
    client._http.post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))

    with patch("services.sheet_client.RETRY_BASE_DELAY", 0):
        result = await client.send(_mutation())

    assert result.status is SyncStatus.TIMEOUT
    assert client._http.post.call_count == 3
    await client.close()


@pytest.mark.asyncio
async def test_send_4xx_not_retried(client):
    await client.start()
    client._http.post = AsyncMock(return_value=_error_response(400))

    result = await client.send(_mutation())

    assert result.status is SyncStatus.FAILED
    assert result.status_code == 400
    assert client._http.post.call_count == 1
    await client.close()


@pytest.mark.asyncio
async def test_send_5xx_exhausted_reports_failed(client):
    await client.start()
    client._http.post = AsyncMock(return_value=_error_response(503))

    with patch("services.sheet_client.RETRY_BASE_DELAY", 0):
        result = await client.send(_mutation())

    assert result.status is SyncStatus.FAILED
    assert result.status_code == 503
    assert result.attempts == 3
    assert client.breaker.failures == 3
    await client.close()


@pytest.mark.asyncio
async def test_send_never_raises_when_circuit_open(client):
    for _ in range(CIRCUIT_OPEN_THRESHOLD):
        client.breaker.failed()

    result = await client.send(_mutation())

    assert result.status is SyncStatus.FAILED
    assert result.attempts == 0


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------

def test_circuit_opens_after_threshold(client):
    assert client.circuit_open is False
    for _ in range(CIRCUIT_OPEN_THRESHOLD):
        client.breaker.failed()
    assert client.circuit_open is True
    client.breaker.succeeded()
    assert client.circuit_open is False


@pytest.mark.asyncio
async def test_circuit_open_read_fails_fast(client):
    for _ in range(CIRCUIT_OPEN_THRESHOLD):
        client.breaker.failed()
    with pytest.raises(CircuitOpenError):
        await client.fetch_initial_data()


def test_circuit_half_open_after_timeout(client):
    for _ in range(CIRCUIT_OPEN_THRESHOLD):
        client.breaker.failed()
    client.breaker.opened_at -= 61
    assert client.circuit_open is False


def test_failed_half_open_call_reopens_circuit():
    breaker = CircuitBreaker(threshold=2, reset_after=10)
    with patch("services.sheet_client.time.monotonic", return_value=0.0):
        breaker.failed()
        breaker.failed()
        assert breaker.is_open is True
    with patch("services.sheet_client.time.monotonic", return_value=20.0):
        assert breaker.is_open is False  # one call allowed through
        breaker.failed()
        assert breaker.is_open is True
    with patch("services.sheet_client.time.monotonic", return_value=31.0):
        assert breaker.is_open is False
        breaker.succeeded()
        assert breaker.failures == 0
        assert breaker.opened_at is None
