"""
test_event_source.py — MongoEventSource and StaticEventSource.

The Motor collection is replaced by a MagicMock chain:
    db[collection].find(...).sort(...).to_list(None)
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import NOW, make_event
from geo_directory.services.event_source import MongoEventSource, StaticEventSource, StatsFetchFailure


def _db_returning(docs=None, error=None):
    collection = MagicMock()
    to_list = AsyncMock(return_value=docs or [], side_effect=error)
    collection.find.return_value.sort.return_value.to_list = to_list
    return {"stories": collection}, collection


class TestMongoEventSource:

    async def test_queries_window_newest_first(self):
        docs = [
            {"headline": "new", "created_at": NOW - timedelta(hours=1), "country_code": "IN"},
            {"headline": "old", "created_at": NOW - timedelta(hours=5), "city": "Paris"},
        ]
        db, collection = _db_returning(docs)
        source = MongoEventSource(lambda: db, collection="stories")
        cutoff = NOW - timedelta(hours=48)

        events = await source.fetch_since(cutoff)

        assert [e.headline for e in events] == ["new", "old"]
        query, projection = collection.find.call_args.args
        assert query == {"created_at": {"$gte": cutoff}}
        assert projection["_id"] == 0
        collection.find.return_value.sort.assert_called_once_with("created_at", -1)

    async def test_naive_datetimes_are_treated_as_utc(self):
        naive = datetime(2026, 2, 22, 11, 0)
        db, _ = _db_returning([{"headline": "x", "created_at": naive}])
        events = await MongoEventSource(lambda: db, collection="stories").fetch_since(NOW)
        assert events[0].created_at.tzinfo is not None
        assert events[0].created_at == naive.replace(tzinfo=timezone.utc)

    async def test_no_database(self):
        source = MongoEventSource(lambda: None)
        with pytest.raises(StatsFetchFailure, match="database unavailable"):
            await source.fetch_since(NOW)

    async def test_query_error_is_wrapped(self):
        db, _ = _db_returning(error=RuntimeError("connection reset"))
        source = MongoEventSource(lambda: db, collection="stories")
        with pytest.raises(StatsFetchFailure, match="connection reset"):
            await source.fetch_since(NOW)

    async def test_malformed_record_is_wrapped(self):
        db, _ = _db_returning([{"headline": "no date"}])
        source = MongoEventSource(lambda: db, collection="stories")
        with pytest.raises(StatsFetchFailure, match="malformed"):
            await source.fetch_since(NOW)


class TestStaticEventSource:

    async def test_filters_and_sorts(self):
        source = StaticEventSource([
            make_event("older", hours_ago=10),
            make_event("outside", hours_ago=100),
            make_event("newer", hours_ago=1),
        ])
        events = await source.fetch_since(NOW - timedelta(hours=48))
        assert [e.headline for e in events] == ["newer", "older"]
