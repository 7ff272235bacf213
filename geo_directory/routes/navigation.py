"""
navigation.py — Drill-down navigation sessions.

Routes:
  POST /api/v1/navigation/sessions                       — new session at WORLD
  GET  /api/v1/navigation/sessions/{sid}                 — current view
  POST /api/v1/navigation/sessions/{sid}/drill           — select a visible item
  POST /api/v1/navigation/sessions/{sid}/jump            — breadcrumb jump
  POST /api/v1/navigation/sessions/{sid}/reset           — back to WORLD
  POST /api/v1/navigation/sessions/{sid}/auto-detect     — one-shot jump from coordinates
  POST /api/v1/navigation/sessions/{sid}/restore         — rebuild from a deep link

Every view returns the visible items with their statistics attached
(continents, countries and states only; below that there is no stats
binding), the breadcrumb trail, the addressable link and the filter the
story listing should use for "view stories here".

Navigation requests never fail with 4xx for stale or unreachable ids:
the machine fails closed and the response says applied=false.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from geo_directory.models.navigation import (
    AutoDetectRequest,
    BreadcrumbJumpRequest,
    DrillDownRequest,
    NavigationLink,
    NavigationView,
    TransitionResponse,
)
from geo_directory.services.navigation import (
    NavigationSessionStore,
    NavigationStateMachine,
    Transition,
    get_session_store,
    stats_key,
)
from geo_directory.services.resolver import CoordinateResolver, get_resolver
from geo_directory.services.stats_aggregator import StatsAggregator, get_stats_aggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/navigation", tags=["navigation"])


def _session_or_404(store: NavigationSessionStore, session_id: str) -> NavigationStateMachine:
    machine = store.get(session_id)
    if machine is None:
        raise HTTPException(status_code=404, detail="Unknown or expired navigation session")
    return machine


def build_view(machine: NavigationStateMachine, aggregator: StatsAggregator) -> NavigationView:
    """Derive the full view for a session and bind statistics to its items."""
    items = machine.current_items()
    binding = machine.sibling_keys()
    stats_response = None
    if binding is not None:
        level, keys = binding
        stats_response = aggregator.stats_for(level, keys)
        items = [
            item.model_copy(update={"stats": stats_response.stats.get(stats_key(item))})
            for item in items
        ]

    return NavigationView(
        session_id=machine.session_id,
        state=machine.state,
        items=items,
        breadcrumbs=machine.breadcrumbs(),
        link=machine.to_link(),
        filter=machine.story_filter(),
        auto_detect_used=machine.auto_detect_used,
        stats_last_updated=stats_response.last_updated if stats_response else aggregator.last_updated,
        stats_error=stats_response.error if stats_response else aggregator.last_error,
    )


def _respond(
    machine: NavigationStateMachine, transition: Transition, aggregator: StatsAggregator
) -> TransitionResponse:
    return TransitionResponse(
        applied=transition.applied,
        view=build_view(machine, aggregator),
        exit=transition.exit,
    )


@router.post("/sessions", response_model=NavigationView, status_code=201)
async def create_session(
    store: NavigationSessionStore = Depends(get_session_store),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    machine = store.create()
    logger.debug("Navigation session %s created (%d active)", machine.session_id, len(store))
    return build_view(machine, aggregator)


@router.get("/sessions/{session_id}", response_model=NavigationView)
async def get_session(
    session_id: str,
    store: NavigationSessionStore = Depends(get_session_store),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    return build_view(_session_or_404(store, session_id), aggregator)


@router.post("/sessions/{session_id}/drill", response_model=TransitionResponse)
async def drill_down(
    session_id: str,
    payload: DrillDownRequest,
    store: NavigationSessionStore = Depends(get_session_store),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    """Select a visible item. Choosing a locality returns `exit` instead of a new level."""
    machine = _session_or_404(store, session_id)
    return _respond(machine, machine.drill_down(payload.id), aggregator)


@router.post("/sessions/{session_id}/jump", response_model=TransitionResponse)
async def breadcrumb_jump(
    session_id: str,
    payload: BreadcrumbJumpRequest,
    store: NavigationSessionStore = Depends(get_session_store),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    machine = _session_or_404(store, session_id)
    return _respond(machine, machine.breadcrumb_jump(payload.level, payload.id), aggregator)


@router.post("/sessions/{session_id}/reset", response_model=TransitionResponse)
async def reset(
    session_id: str,
    store: NavigationSessionStore = Depends(get_session_store),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    machine = _session_or_404(store, session_id)
    return _respond(machine, machine.reset(), aggregator)


@router.post("/sessions/{session_id}/auto-detect", response_model=TransitionResponse)
async def auto_detect(
    session_id: str,
    payload: AutoDetectRequest,
    store: NavigationSessionStore = Depends(get_session_store),
    resolver: CoordinateResolver = Depends(get_resolver),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    """
    Jump to the country containing (lat, lng), once per session.

    applied=false means either the session already used its auto-detect
    or the coordinates matched no country; both leave the view unchanged.
    """
    machine = _session_or_404(store, session_id)
    transition = machine.auto_detect_from_coordinates(resolver, payload.lat, payload.lng)
    return _respond(machine, transition, aggregator)


@router.post("/sessions/{session_id}/restore", response_model=TransitionResponse)
async def restore(
    session_id: str,
    payload: NavigationLink,
    store: NavigationSessionStore = Depends(get_session_store),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    machine = _session_or_404(store, session_id)
    return _respond(machine, machine.restore(payload), aggregator)
