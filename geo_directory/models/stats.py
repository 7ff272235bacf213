"""
stats.py — Pydantic schemas for the statistics overlay.

StoryEvent    — one flat record from the event source (stories collection)
LocationStats — per-node aggregate bound to a visible sibling
StatsResponse — what GET /api/v1/stats returns
StatsStatus   — refresher health ("could not refresh" indicator)
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Trend = Literal["up", "down", "stable"]
ActivityStatus = Literal["stable", "active", "hotspot"]


class StoryEvent(BaseModel):
    """
    A recent story as stored by the ingestion side.

    Only headline and created_at are guaranteed. country_code is the join
    key to the catalog; city is free text written by whatever feed
    produced the story.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    headline: str
    created_at: datetime
    country_code: Optional[str] = None
    city: Optional[str] = None
    category: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Motor returns naive datetimes that are UTC by convention
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class LocationStats(BaseModel):
    story_count: int = Field(default=0, ge=0)
    trend: Trend = "stable"
    status: ActivityStatus = "stable"
    top_headline: Optional[str] = None
    top_categories: list[str] = Field(default_factory=list)
    active_narratives: int = 0  # distinct categories seen
    trending_narrative: str = "No dominant narrative"


class StatsResponse(BaseModel):
    level: str
    stats: dict[str, LocationStats]
    last_updated: Optional[datetime] = None
    error: Optional[str] = None  # advisory only; stats above are still valid


class StatsStatus(BaseModel):
    last_updated: Optional[datetime] = None
    last_error: Optional[str] = None
    events_in_window: int
    refreshing: bool
    realtime_connected: bool
