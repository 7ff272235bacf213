"""
pytest configuration and shared fixtures for the Geo Directory tests.

Key concern: tests must not require a live MongoDB. We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops.
  2. Setting db_client.client = None (disconnected) so health reports
     "disconnected" — a valid test-mode state.
  3. Overriding the stats aggregator dependency with one backed by an
     in-memory StaticEventSource.

The catalog under test is the real bundled catalog.json, so scenarios
like "Bengaluru is in Karnataka" hold exactly as in production.
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SEARCH_RATE_LIMIT", "1000/minute")

NOW = datetime(2026, 2, 22, 12, 0, tzinfo=timezone.utc)


def make_event(headline, hours_ago=1.0, country_code=None, city=None, category=None):
    from geo_directory.models.stats import StoryEvent

    return StoryEvent(
        headline=headline,
        created_at=NOW - timedelta(hours=hours_ago),
        country_code=country_code,
        city=city,
        category=category,
    )


@pytest.fixture()
def catalog():
    from geo_directory.services.catalog import get_catalog

    return get_catalog()


@pytest.fixture()
def event_source():
    from geo_directory.services.event_source import StaticEventSource

    return StaticEventSource()


@pytest.fixture()
def aggregator(catalog, event_source):
    from geo_directory.services.stats_aggregator import StatsAggregator

    return StatsAggregator(catalog, event_source, clock=lambda: NOW)


@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    Tests that need a real db should override this fixture locally.
    """
    with (
        patch("geo_directory.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("geo_directory.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import geo_directory.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture()
async def client(mock_db, aggregator):  # noqa: ARG001 — mock_db must run first
    """
    HTTPX async test client wired to the FastAPI app, with the stats
    aggregator swapped for the in-memory one.

    Usage:
        async def test_something(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from geo_directory.main import app
    from geo_directory.services.stats_aggregator import get_stats_aggregator

    app.dependency_overrides[get_stats_aggregator] = lambda: aggregator
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
