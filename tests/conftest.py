"""Shared pytest fixtures for gradebook tests.

Provides:
- ``state``: the sample school with a few recorded scores and sessions
- ``store``: a fresh StateStore holding ``state``, installed as the singleton,
  with a MagicMock in place of the sync service
- ``login``: helper that logs in through the API and returns auth headers
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from models.school import AppState
from services.state_store import LoadData, StateStore
from tests.factories import graded_state


@pytest.fixture
def state() -> AppState:
    return graded_state()


@pytest.fixture
def store(state):
    """Fresh store installed as the module singleton; writes go to a mock."""
    fresh = StateStore(sync=MagicMock())
    fresh.dispatch(LoadData(state=state))
    fresh.loaded_from = "sample"
    with patch("services.state_store._store", fresh):
        yield fresh


@pytest.fixture
def login():
    async def _login(client, role: str, **fields) -> dict[str, str]:
        resp = await client.post("/api/auth/login", json={"role": role, **fields})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login
