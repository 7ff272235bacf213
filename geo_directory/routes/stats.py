"""
stats.py — Recent-activity statistics routes.

Routes:
  GET  /api/v1/stats?level=continent&keys=asia,europe  — stats for one sibling set
  POST /api/v1/stats/refresh                           — manual refresh
  GET  /api/v1/stats/status                            — refresher health
  WS   /api/v1/stats/stream                            — status frames every few seconds

HOW THE DATA FLOWS
──────────────────
1. The StatsAggregator background task re-reads the last 48 h of stories
   every 60 s (started in main.py's lifespan).
2. GET /api/v1/stats aggregates the current snapshot for the requested
   keys. Every key comes back, zero-count keys included.
3. If the latest refresh failed, the previous numbers are still served
   and `error` carries the advisory "could not refresh" message.
4. The WebSocket stream only ever sends the latest status; a slow client
   skips frames rather than receiving a backlog.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from geo_directory.models.geo import GeoLevel
from geo_directory.models.stats import StatsResponse, StatsStatus
from geo_directory.services.realtime import realtime_monitor
from geo_directory.services.stats_aggregator import StatsAggregator, get_stats_aggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/stats", tags=["stats"])

STREAM_INTERVAL_SECONDS = 5


def _status(aggregator: StatsAggregator) -> StatsStatus:
    return StatsStatus(
        last_updated=aggregator.last_updated,
        last_error=aggregator.last_error,
        events_in_window=len(aggregator.events),
        refreshing=aggregator.refreshing,
        realtime_connected=realtime_monitor.connected,
    )


@router.get("", response_model=StatsResponse)
async def get_stats(
    level: GeoLevel = Query(..., description="Level of the sibling nodes the keys name"),
    keys: str = Query(..., min_length=1, description="Comma-separated continent ids, ISO codes or place names"),
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    """Story counts, trend and newest headline for each requested sibling."""
    key_list = [k.strip() for k in keys.split(",") if k.strip()]
    return aggregator.stats_for(level, key_list)


@router.post("/refresh", response_model=StatsStatus)
async def refresh_stats(aggregator: StatsAggregator = Depends(get_stats_aggregator)):
    """
    Trigger a refresh now.

    If one is already running this returns immediately and the running
    refresh does one more pass when it finishes.
    """
    await aggregator.refresh()
    return _status(aggregator)


@router.get("/status", response_model=StatsStatus)
async def stats_status(aggregator: StatsAggregator = Depends(get_stats_aggregator)):
    return _status(aggregator)


@router.websocket("/stream")
async def stats_stream(
    websocket: WebSocket,
    aggregator: StatsAggregator = Depends(get_stats_aggregator),
):
    """
    Push the refresher status every few seconds.

    Message format (JSON):
      {
        "last_updated": "2026-02-21T18:00:00+00:00",
        "last_error": null,
        "events_in_window": 412,
        "refreshing": false,
        "realtime_connected": true
      }

    Clients re-request /api/v1/stats for their visible keys whenever
    last_updated changes.
    """
    await websocket.accept()
    try:
        while True:
            await websocket.send_text(_status(aggregator).model_dump_json())
            await asyncio.sleep(STREAM_INTERVAL_SECONDS)
    except WebSocketDisconnect:
        logger.info("Stats WebSocket client disconnected")
    except Exception as exc:
        logger.warning("Stats WebSocket error: %s", exc)
