"""
navigation.py — Pydantic schemas for the drill-down navigation machine.

NavigationState is the only stored piece of session state. Everything
else here (items, breadcrumbs, link, story filter) is derived from it
and the catalog on demand.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from geo_directory.models.geo import GeoLevel
from geo_directory.models.stats import LocationStats


class NavigationState(BaseModel):
    """
    Current drill level plus the selection chain.

    The chain is always a strict prefix: state_id is never set while
    country_id is None, and so on. Instances are frozen; a transition
    builds a new one and swaps it in, so no half-applied state is ever
    observable.
    """

    model_config = ConfigDict(frozen=True)

    level: GeoLevel = GeoLevel.WORLD
    continent_id: Optional[str] = None
    country_id: Optional[str] = None
    state_id: Optional[str] = None
    city_id: Optional[str] = None


class BreadcrumbItem(BaseModel):
    level: GeoLevel
    id: str
    name: str


class NavigationLink(BaseModel):
    """
    Addressable form of a drill position, as carried in a URL.

    country is the ISO code rather than the hierarchy id since that is
    what external links use.
    """

    continent: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    locality: Optional[str] = None


class StoryFilter(BaseModel):
    """Filter handed to the external story listing for the current selection."""

    region: Optional[str] = None    # continent id
    country: Optional[str] = None   # ISO code
    state: Optional[str] = None     # state name (stories store free text)
    city: Optional[str] = None      # city name
    locality: Optional[str] = None  # locality id, only on drill-down exit


class NavigationItem(BaseModel):
    """One child of the deepest selected node, as listed to the user."""

    level: GeoLevel
    id: str
    name: str
    code: Optional[str] = None        # country ISO code / state short code
    flag: Optional[str] = None
    is_capital: Optional[bool] = None
    kind: Optional[str] = None        # localities only
    child_count: int = 0
    stats: Optional[LocationStats] = None


# ── Requests ──────────────────────────────────────────────────────────────────

class DrillDownRequest(BaseModel):
    id: str = Field(..., min_length=1, description="Id of a currently visible item")


class BreadcrumbJumpRequest(BaseModel):
    level: GeoLevel
    id: Optional[str] = Field(default=None, description="Id at that level (omit for world)")


class AutoDetectRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


# ── Responses ─────────────────────────────────────────────────────────────────

class NavigationView(BaseModel):
    session_id: str
    state: NavigationState
    items: list[NavigationItem]
    breadcrumbs: list[BreadcrumbItem]
    link: NavigationLink
    filter: StoryFilter
    auto_detect_used: bool
    stats_last_updated: Optional[datetime] = None
    stats_error: Optional[str] = None


class TransitionResponse(BaseModel):
    """
    Outcome of a navigation request.

    applied is False when the request was rejected and the machine failed
    closed; view then shows where the session actually is. exit is set
    only when a locality was chosen and navigation hands off.
    """

    applied: bool
    view: NavigationView
    exit: Optional[StoryFilter] = None
