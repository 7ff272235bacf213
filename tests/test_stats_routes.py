"""
test_stats_routes.py — /api/v1/stats endpoints.

The aggregator is the in-memory one from conftest (StaticEventSource with
a fixed clock), so every number here is deterministic.
"""

import pytest

from conftest import make_event
from geo_directory.services.event_source import StatsFetchFailure


@pytest.fixture()
def seeded(event_source):
    event_source.events = (
        [make_event(f"IN {i}", hours_ago=1 + i * 0.1, country_code="IN", city="Bengaluru") for i in range(60)]
        + [make_event(f"US {i}", hours_ago=10 + i, country_code="US", city="New York") for i in range(5)]
    )
    return event_source


class TestStatsRoute:

    async def test_continent_stats(self, client, aggregator, seeded):
        await aggregator.refresh()
        r = await client.get("/api/v1/stats", params={"level": "continent", "keys": "asia,north-america,europe"})
        assert r.status_code == 200
        data = r.json()
        assert data["level"] == "continent"
        assert data["stats"]["asia"]["story_count"] == 60
        assert data["stats"]["asia"]["trend"] == "up"
        assert data["stats"]["asia"]["top_headline"] == "IN 0"
        assert data["stats"]["north-america"]["trend"] == "stable"
        assert data["stats"]["europe"]["story_count"] == 0
        assert data["error"] is None
        assert data["last_updated"] is not None

    async def test_country_stats(self, client, aggregator, seeded):
        await aggregator.refresh()
        r = await client.get("/api/v1/stats", params={"level": "country", "keys": "IN, US"})
        stats = r.json()["stats"]
        assert stats["IN"]["story_count"] == 60
        assert stats["US"]["story_count"] == 5

    async def test_repeated_keys_and_status(self, client, aggregator, seeded):
        await aggregator.refresh()
        r = await client.get("/api/v1/stats", params={"level": "country", "keys": "IN,IN,US"})
        stats = r.json()["stats"]
        assert stats["IN"]["story_count"] == 60
        assert stats["IN"]["status"] == "active"
        assert stats["IN"]["trending_narrative"] == "No dominant narrative"
        assert stats["US"]["status"] == "stable"

    async def test_city_stats_by_name(self, client, aggregator, seeded):
        await aggregator.refresh()
        r = await client.get("/api/v1/stats", params={"level": "city", "keys": "Bengaluru,Pune"})
        stats = r.json()["stats"]
        assert stats["Bengaluru"]["story_count"] == 60
        assert stats["Bengaluru"]["trend"] == "stable"
        assert stats["Pune"]["story_count"] == 0

    async def test_before_first_refresh_everything_is_zero(self, client):
        r = await client.get("/api/v1/stats", params={"level": "continent", "keys": "asia"})
        assert r.status_code == 200
        assert r.json()["stats"]["asia"]["story_count"] == 0
        assert r.json()["last_updated"] is None

    async def test_invalid_level_rejected(self, client):
        r = await client.get("/api/v1/stats", params={"level": "planet", "keys": "asia"})
        assert r.status_code == 422

    async def test_keys_required(self, client):
        r = await client.get("/api/v1/stats", params={"level": "continent"})
        assert r.status_code == 422

    async def test_failed_refresh_is_advisory(self, client, aggregator, seeded):
        await aggregator.refresh()

        async def broken(cutoff):
            raise StatsFetchFailure("database unavailable")

        seeded.fetch_since = broken
        r = await client.post("/api/v1/stats/refresh")
        assert r.status_code == 200
        assert r.json()["last_error"] == "database unavailable"

        r = await client.get("/api/v1/stats", params={"level": "continent", "keys": "asia"})
        data = r.json()
        assert data["stats"]["asia"]["story_count"] == 60
        assert data["error"] == "database unavailable"


class TestRefreshAndStatus:

    async def test_manual_refresh(self, client, seeded):
        r = await client.post("/api/v1/stats/refresh")
        assert r.status_code == 200
        data = r.json()
        assert data["events_in_window"] == 65
        assert data["refreshing"] is False
        assert data["last_error"] is None

    async def test_status(self, client):
        r = await client.get("/api/v1/stats/status")
        assert r.status_code == 200
        data = r.json()
        assert data["events_in_window"] == 0
        assert data["last_updated"] is None
        assert data["realtime_connected"] is False
