"""Shared fixtures for E2E tests against a real PostgreSQL database."""

import os

import pytest
import pytest_asyncio
from sqlalchemy import delete

from graph_organizer.database import close_db, get_db, init_db
from graph_organizer.schema import ClusteringRunRecord, ClusterRecord, EventRecord

async def _wipe():
    async with get_db() as session:
        await session.execute(delete(EventRecord))
        await session.execute(delete(ClusterRecord))
        await session.execute(delete(ClusteringRunRecord))

@pytest_asyncio.fixture
async def database():
    """Fresh tables for each test; the engine is disposed afterwards."""
    if not os.environ.get("DATABASE_URL"):
        pytest.skip("DATABASE_URL not set")
    await init_db()
    await _wipe()
    yield
    await _wipe()
    await close_db()
