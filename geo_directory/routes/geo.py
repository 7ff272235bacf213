"""
geo.py — Catalog browsing, location search and coordinate resolution.

Routes:
  GET /api/v1/geo/continents                                  — continent list with country counts
  GET /api/v1/geo/continents/{continent_id}                   — one continent with its subtree
  GET /api/v1/geo/countries                                   — every country, flattened
  GET /api/v1/geo/countries/{code}                            — country by ISO code (any case)
  GET /api/v1/geo/countries/{code}/states/{state_id}          — one state
  GET /api/v1/geo/countries/{code}/states/{state_id}/cities/{city_id}
  GET /api/v1/geo/summary                                     — node counts per level
  GET /api/v1/geo/search?q=beng&limit=20                      — typeahead search
  GET /api/v1/geo/resolve?lat=12.97&lng=77.59                 — coarse reverse lookup

All of these are pure reads over the static catalog. A lookup miss is a
404 here; inside the services it is just None.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from geo_directory.core.config import settings
from geo_directory.core.rate_limit import limiter
from geo_directory.models.geo import (
    CatalogSummary,
    City,
    Continent,
    ContinentSummary,
    Country,
    ResolvedLocation,
    State,
)
from geo_directory.models.search import SearchResponse
from geo_directory.services.catalog import GeoCatalog, get_catalog
from geo_directory.services.resolver import CoordinateResolver, get_resolver
from geo_directory.services.search import LocationSearchIndex, get_search_index

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/geo", tags=["geo"])


def _country_or_404(catalog: GeoCatalog, code: str) -> Country:
    country = catalog.get_country_by_code(code)
    if country is None:
        raise HTTPException(status_code=404, detail=f"Unknown country code: {code}")
    return country


# ── Catalog ───────────────────────────────────────────────────────────────────

@router.get("/continents", response_model=list[ContinentSummary])
async def list_continents(catalog: GeoCatalog = Depends(get_catalog)):
    return catalog.continent_summaries()


@router.get("/continents/{continent_id}", response_model=Continent)
async def get_continent(continent_id: str, catalog: GeoCatalog = Depends(get_catalog)):
    continent = catalog.get_continent(continent_id)
    if continent is None:
        raise HTTPException(status_code=404, detail=f"Unknown continent: {continent_id}")
    return continent


@router.get("/countries", response_model=list[Country])
async def list_countries(catalog: GeoCatalog = Depends(get_catalog)):
    return catalog.all_countries()


@router.get("/countries/{code}", response_model=Country)
async def get_country(code: str, catalog: GeoCatalog = Depends(get_catalog)):
    return _country_or_404(catalog, code)


@router.get("/countries/{code}/states/{state_id}", response_model=State)
async def get_state(code: str, state_id: str, catalog: GeoCatalog = Depends(get_catalog)):
    country = _country_or_404(catalog, code)
    state = catalog.get_state(country.id, state_id)
    if state is None:
        raise HTTPException(status_code=404, detail=f"Unknown state {state_id} in {country.code}")
    return state


@router.get("/countries/{code}/states/{state_id}/cities/{city_id}", response_model=City)
async def get_city(code: str, state_id: str, city_id: str, catalog: GeoCatalog = Depends(get_catalog)):
    country = _country_or_404(catalog, code)
    city = catalog.get_city(country.id, state_id, city_id)
    if city is None:
        raise HTTPException(status_code=404, detail=f"Unknown city {city_id} in {country.code}/{state_id}")
    return city


@router.get("/summary", response_model=CatalogSummary)
async def get_summary(catalog: GeoCatalog = Depends(get_catalog)):
    return catalog.summary()


# ── Search ────────────────────────────────────────────────────────────────────

@router.get("/search", response_model=SearchResponse)
@limiter.limit(settings.search_rate_limit)
async def search_locations(
    request: Request,
    q: str = Query(default="", max_length=100, description="Substring of a place name, or an ISO country code"),
    limit: Optional[int] = Query(default=None, ge=1, le=settings.search_max_limit),
    index: LocationSearchIndex = Depends(get_search_index),
):
    """
    Search continents, countries, states, cities and localities.

    Queries shorter than two characters return an empty list rather than
    an error, so clients can call this on every keystroke.
    """
    results = index.search(q, limit=limit or settings.search_default_limit)
    return SearchResponse(query=q, results=results)


# ── Coordinates ───────────────────────────────────────────────────────────────

@router.get("/resolve", response_model=Optional[ResolvedLocation])
async def resolve_coordinates(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    resolver: CoordinateResolver = Depends(get_resolver),
):
    """
    Best-effort country for a coordinate pair.

    Returns null when no bounding box matches; clients should then stay
    on the world view.
    """
    return resolver.resolve(lat, lng)
