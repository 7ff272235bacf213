"""
event_source.py — Read-only adapters over the recent-stories store.

The directory does not own the stories collection; ingestion writes it
elsewhere. All we need is "every record with created_at ≥ cutoff,
newest first". Any problem getting that (no DB, query error, a record
that doesn't fit StoryEvent) is raised as StatsFetchFailure so the
aggregator can keep its previous snapshot.

Expected document shape in MongoDB:

  {
    "headline":     "Metro line extension approved",
    "country_code": "IN",                 ← optional, ISO alpha-2
    "city":         "Bengaluru",          ← optional free text
    "category":     "politics",           ← optional
    "created_at":   ISODate("2026-02-22T00:00:00Z")
  }

Index to create once:
  db.stories.createIndex({ created_at: -1 })
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from geo_directory.core.config import settings
from geo_directory.models.stats import StoryEvent

logger = logging.getLogger(__name__)

_PROJECTION = {"_id": 0, "headline": 1, "country_code": 1, "city": 1, "category": 1, "created_at": 1}


class StatsFetchFailure(RuntimeError):
    """The event source could not produce a usable window of events."""


class EventSource(Protocol):
    async def fetch_since(self, cutoff: datetime) -> list[StoryEvent]:
        """Return every event with created_at ≥ cutoff, newest first."""
        ...


class MongoEventSource:
    """
    EventSource backed by the Motor database handle.

    The handle is looked up on every call (via get_db) rather than
    captured once, so a connection established after startup is used
    as soon as it exists.
    """

    def __init__(
        self,
        get_db: Callable[[], Optional[AsyncIOMotorDatabase]],
        collection: str = settings.stories_collection,
    ) -> None:
        self._get_db = get_db
        self.collection = collection

    async def fetch_since(self, cutoff: datetime) -> list[StoryEvent]:
        db = self._get_db()
        if db is None:
            raise StatsFetchFailure("database unavailable")

        try:
            cursor = (
                db[self.collection]
                .find({"created_at": {"$gte": cutoff}}, _PROJECTION)
                .sort("created_at", -1)
            )
            docs = await cursor.to_list(length=None)
        except Exception as exc:
            raise StatsFetchFailure(f"stories query failed: {exc}") from exc

        try:
            return [StoryEvent.model_validate(doc) for doc in docs]
        except ValidationError as exc:
            raise StatsFetchFailure(f"malformed story record: {exc}") from exc


class StaticEventSource:
    """In-memory EventSource, for seeding demos and for tests."""

    def __init__(self, events: list[StoryEvent] | None = None) -> None:
        self.events = list(events or [])

    async def fetch_since(self, cutoff: datetime) -> list[StoryEvent]:
        window = [e for e in self.events if e.created_at >= cutoff]
        return sorted(window, key=lambda e: e.created_at, reverse=True)
