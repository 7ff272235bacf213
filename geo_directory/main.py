"""
Geo Directory API — Application entry point.

Bootstraps FastAPI, wires up middleware, registers route groups, and
manages the lifecycle of everything long-running: the MongoDB
connection, the stats refresher and the realtime change-stream watcher.

Run locally:
    uvicorn geo_directory.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from geo_directory import __version__
from geo_directory.core.config import settings
from geo_directory.core.database import close_mongo_connection, connect_to_mongo, get_db
from geo_directory.core.rate_limit import limiter
from geo_directory.routes.geo import router as geo_router
from geo_directory.routes.health import router as health_router
from geo_directory.routes.navigation import router as navigation_router
from geo_directory.routes.stats import router as stats_router
from geo_directory.services.catalog import get_catalog
from geo_directory.services.realtime import ChangeStreamWatcher, realtime_monitor
from geo_directory.services.stats_aggregator import get_stats_aggregator

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: connect Mongo (degraded mode if it's down), load and validate
    the catalog (a bad catalog aborts startup), then start the stats
    refresher and the realtime watcher.
    Shutdown: cancel both background tasks, then close Mongo.
    """
    logger.info("Starting Geo Directory API (env: %s)", settings.environment)
    await connect_to_mongo()
    get_catalog()

    aggregator = get_stats_aggregator()
    watcher = ChangeStreamWatcher(realtime_monitor, get_db)
    aggregator.start()
    watcher.start()
    yield
    logger.info("Shutting down Geo Directory API")
    await watcher.stop()
    await aggregator.stop()
    await close_mongo_connection()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Geo Directory API",
    description=(
        "Hierarchical directory of continents, countries, states, cities and "
        "localities with drill-down navigation and recent-story statistics."
    ),
    version=__version__,
    lifespan=lifespan,
    # Disable docs in production to reduce attack surface
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ─── Middleware ─────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(geo_router)
app.include_router(stats_router)
app.include_router(navigation_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "Geo Directory API",
        "version": __version__,
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
