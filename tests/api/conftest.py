"""Fixtures for HTTP dashboard API tests (FastAPI)."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

import issuedeck.dashboard as dash_module
from issuedeck.core import DataController
from issuedeck.dashboard import create_app


async def _client_for(controller: DataController) -> AsyncIterator[AsyncClient]:
    dash_module._controller = controller
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    dash_module._controller = None


@pytest.fixture
async def client(populated_controller: DataController) -> AsyncIterator[AsyncClient]:
    """Test client backed by the sample data set (locked free version)."""
    async for c in _client_for(populated_controller):
        yield c


@pytest.fixture
async def empty_client(controller: DataController) -> AsyncIterator[AsyncClient]:
    """Test client backed by an empty controller."""
    async for c in _client_for(controller):
        yield c
