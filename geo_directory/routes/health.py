"""
Health check endpoint.

Used by container health checks, load balancers and the front-end to
check API connectivity.

Returns status + DB connectivity + realtime feed state so callers can
distinguish between "API down", "API up but DB unreachable" and "API up,
statistics stale". The directory itself (catalog, search, navigation)
works in all three of the latter cases.
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from geo_directory import __version__
from geo_directory.core import database as db_module
from geo_directory.services.catalog import get_catalog
from geo_directory.services.realtime import realtime_monitor

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str  # Always "ok" if the API process is alive
    version: str
    database: str  # "connected" | "disconnected"
    realtime: str  # "connected" | "disconnected"
    catalog_version: str
    environment: str


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    """
    Returns the liveness status of the API and its collaborators.

    The API is considered healthy (HTTP 200) even when the database is
    disconnected.
    """
    from geo_directory.core.config import settings

    db_status = "disconnected"
    try:
        # Access via module reference so tests can patch db_module.db_client
        if db_module.db_client.client is not None:
            await db_module.db_client.client.admin.command("ping")
            db_status = "connected"
    except Exception as exc:
        logger.warning("DB ping failed: %s", exc)

    return HealthResponse(
        status="ok",
        version=__version__,
        database=db_status,
        realtime="connected" if realtime_monitor.connected else "disconnected",
        catalog_version=get_catalog().version,
        environment=settings.environment,
    )
