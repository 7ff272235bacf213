"""
search.py — Pydantic schemas for location search.

A SearchResult carries enough ancestor identifiers to re-enter the
hierarchy at the match directly (see NavigationStateMachine.restore),
so clients never need a second search to drill into a hit.
"""

from typing import Literal, Optional

from pydantic import BaseModel

SearchResultType = Literal["continent", "country", "state", "city", "locality"]


class SearchResult(BaseModel):
    type: SearchResultType
    id: str
    name: str
    path: list[str]                     # names from continent down to the match
    continent_id: str
    country_id: Optional[str] = None
    country_code: Optional[str] = None
    state_id: Optional[str] = None
    city_id: Optional[str] = None
    flag: Optional[str] = None          # countries only


class SearchResponse(BaseModel):
    """Response body for GET /api/v1/geo/search."""
    query: str
    results: list[SearchResult]
