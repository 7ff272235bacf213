"""
stats_aggregator.py — Recent-activity statistics for visible catalog nodes.

HOW IT WORKS
────────────
1. A refresh fetches every story from the trailing window (48 h by
   default) from the EventSource, newest first, and swaps it in as the
   current snapshot. That happens on start, every refresh interval and on
   manual request, and it is always a full re-fetch, never a delta.
2. stats_for(level, keys) aggregates the snapshot for one sibling set.
   compute_stats() is a pure function, so the same snapshot always gives
   the same answer; results are memoised per snapshot in a
   bounded LRU.
3. A failed refresh (unreachable source, timeout, malformed record) keeps
   the previous snapshot and records last_error. The next tick runs as
   normal.

AGGREGATION BY LEVEL
────────────────────
  world / continent   country_code → continent id via the reverse index;
                      trend "up" when count > continent threshold (50)
  country             keyed by uppercased ISO code;
                      trend "up" when count > country threshold (20)
  state/city/locality no join key exists, so the sibling key (a name) is
                      matched as a case-insensitive substring of the
                      story's free-text city; trend always "stable"

At every level status is "hotspot" above 100 stories, "active" above 30,
else "stable", and trending_narrative names the top category.

The representative headline for a node is the first one seen, which is
the newest because the snapshot is ordered newest first.

CONCURRENCY
───────────
Refreshes never overlap. A request that arrives while one is in flight
is folded into a single follow-up run. A snapshot is only swapped in if
its fetch started after the current one's, so a slow, stale fetch can
never overwrite a newer result.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter, OrderedDict
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Iterable, Optional

from geo_directory.core.config import settings
from geo_directory.core.database import get_db
from geo_directory.models.geo import GeoLevel
from geo_directory.models.stats import ActivityStatus, LocationStats, StatsResponse, StoryEvent, Trend
from geo_directory.services.catalog import GeoCatalog, get_catalog
from geo_directory.services.event_source import EventSource, MongoEventSource

logger = logging.getLogger(__name__)

_SUBSTRING_LEVELS = {GeoLevel.STATE, GeoLevel.CITY, GeoLevel.LOCALITY}
_TOP_CATEGORIES = 3


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ── Pure aggregation ──────────────────────────────────────────────────────────

class _Tally:
    __slots__ = ("count", "headline", "categories")

    def __init__(self) -> None:
        self.count = 0
        self.headline: Optional[str] = None
        self.categories: Counter[str] = Counter()

    def add(self, event: StoryEvent) -> None:
        self.count += 1
        if self.headline is None:
            self.headline = event.headline
        if event.category:
            self.categories[event.category] += 1

    def to_stats(self, trend: Trend, status: ActivityStatus) -> LocationStats:
        # Counter keeps first-seen order, and sorted() is stable, so ties go
        # to the category seen first
        ranked = sorted(self.categories.items(), key=lambda kv: -kv[1])
        top = [name for name, _ in ranked[:_TOP_CATEGORIES]]
        return LocationStats(
            story_count=self.count,
            trend=trend,
            status=status,
            top_headline=self.headline,
            top_categories=top,
            active_narratives=len(self.categories),
            trending_narrative=trending_narrative(top[0] if top else None),
        )


def classify_trend(count: int, threshold: Optional[int]) -> Trend:
    """'up' above a fixed volume threshold, otherwise 'stable'."""
    if threshold is not None and count > threshold:
        return "up"
    return "stable"


def classify_status(
    count: int,
    active_threshold: int = settings.active_status_threshold,
    hotspot_threshold: int = settings.hotspot_status_threshold,
) -> ActivityStatus:
    """Volume band: 'hotspot' above the hotspot threshold, 'active' above the active one."""
    if count > hotspot_threshold:
        return "hotspot"
    if count > active_threshold:
        return "active"
    return "stable"


def trending_narrative(category: Optional[str]) -> str:
    if not category:
        return "No dominant narrative"
    return f"{category[:1].upper()}{category[1:]} stories dominating"


def compute_stats(
    catalog: GeoCatalog,
    level: GeoLevel,
    keys: Iterable[str],
    events: Iterable[StoryEvent],
    continent_threshold: int = settings.continent_trend_threshold,
    country_threshold: int = settings.country_trend_threshold,
    active_threshold: int = settings.active_status_threshold,
    hotspot_threshold: int = settings.hotspot_status_threshold,
) -> dict[str, LocationStats]:
    """
    Aggregate events onto the requested sibling keys.

    Every key in `keys` appears in the result, with zero counts where no
    event matched. Keys are continent ids (world/continent), ISO codes
    (country) or node names (state/city/locality).
    """
    # A repeated key is one sibling, not two
    keys = list(dict.fromkeys(keys))
    tallies = {key: _Tally() for key in keys}

    if level in (GeoLevel.WORLD, GeoLevel.CONTINENT):
        threshold: Optional[int] = continent_threshold
        for event in events:
            continent_id = catalog.continent_id_for_code(event.country_code)
            if continent_id in tallies:
                tallies[continent_id].add(event)

    elif level == GeoLevel.COUNTRY:
        threshold = country_threshold
        by_code: dict[str, list[_Tally]] = {}
        for key in keys:
            by_code.setdefault(key.upper(), []).append(tallies[key])
        for event in events:
            if not event.country_code:
                continue
            for tally in by_code.get(event.country_code.upper(), ()):
                tally.add(event)

    elif level in _SUBSTRING_LEVELS:
        threshold = None
        needles = [(key, key.lower()) for key in keys if key]
        for event in events:
            if not event.city:
                continue
            city = event.city.lower()
            for key, needle in needles:
                if needle in city:
                    tallies[key].add(event)

    else:
        raise ValueError(f"No statistics binding for level {level!r}")

    return {
        key: tally.to_stats(
            classify_trend(tally.count, threshold),
            classify_status(tally.count, active_threshold, hotspot_threshold),
        )
        for key, tally in tallies.items()
    }


# ── Refreshing aggregator ─────────────────────────────────────────────────────

class StatsAggregator:
    """
    Owns the current event snapshot and the background refresh task.

    Lifecycle:
        aggregator.start()        # first refresh now, then every interval
        await aggregator.refresh()  # manual trigger
        await aggregator.stop()   # cancels the loop cleanly
    """

    def __init__(
        self,
        catalog: GeoCatalog,
        source: EventSource,
        window_hours: float = settings.stats_window_hours,
        refresh_interval: float = settings.stats_refresh_interval_seconds,
        fetch_timeout: float = settings.stats_fetch_timeout_seconds,
        continent_threshold: int = settings.continent_trend_threshold,
        country_threshold: int = settings.country_trend_threshold,
        active_threshold: int = settings.active_status_threshold,
        hotspot_threshold: int = settings.hotspot_status_threshold,
        memo_size: int = settings.stats_memo_size,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.catalog = catalog
        self.source = source
        self.window = timedelta(hours=window_hours)
        self.refresh_interval = refresh_interval
        self.fetch_timeout = fetch_timeout
        self.continent_threshold = continent_threshold
        self.country_threshold = country_threshold
        self.active_threshold = active_threshold
        self.hotspot_threshold = hotspot_threshold
        self.memo_size = memo_size
        self._clock = clock

        self._events: tuple[StoryEvent, ...] = ()
        self._snapshot_started: Optional[datetime] = None
        # Least recently used first; bounded so arbitrary key sets can't grow it
        # while refreshes keep failing
        self._memo: OrderedDict[tuple[GeoLevel, tuple[str, ...]], dict[str, LocationStats]] = OrderedDict()
        self.last_updated: Optional[datetime] = None
        self.last_error: Optional[str] = None

        self._lock = asyncio.Lock()
        self._follow_up = False
        self._task: Optional[asyncio.Task] = None

    # ── Reads ─────────────────────────────────────────────────────────────────

    @property
    def events(self) -> tuple[StoryEvent, ...]:
        return self._events

    @property
    def refreshing(self) -> bool:
        return self._lock.locked()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def stats_for(self, level: GeoLevel, keys: Iterable[str]) -> StatsResponse:
        """Stats for one sibling set, from whatever snapshot is current."""
        memo_key = (level, tuple(keys))
        stats = self._memo.get(memo_key)
        if stats is None:
            stats = compute_stats(
                self.catalog,
                level,
                memo_key[1],
                self._events,
                continent_threshold=self.continent_threshold,
                country_threshold=self.country_threshold,
                active_threshold=self.active_threshold,
                hotspot_threshold=self.hotspot_threshold,
            )
            self._memo[memo_key] = stats
            while len(self._memo) > self.memo_size:
                self._memo.popitem(last=False)
        else:
            self._memo.move_to_end(memo_key)
        return StatsResponse(
            level=level.value,
            stats=stats,
            last_updated=self.last_updated,
            error=self.last_error,
        )

    # ── Refresh protocol ──────────────────────────────────────────────────────

    async def refresh(self) -> bool:
        """
        Re-fetch the window and swap in a new snapshot.

        Returns True if a new snapshot was installed. When a refresh is
        already running this returns False straight away and the running
        one does exactly one more pass when it finishes.
        """
        if self._lock.locked():
            self._follow_up = True
            logger.debug("Stats refresh already in flight — queued one follow-up")
            return False

        async with self._lock:
            ok = await self._refresh_once()
            while self._follow_up:
                self._follow_up = False
                ok = await self._refresh_once()
        return ok

    async def _refresh_once(self) -> bool:
        started = self._clock()
        cutoff = started - self.window
        try:
            events = await asyncio.wait_for(
                self.source.fetch_since(cutoff), timeout=self.fetch_timeout
            )
            events = tuple(events)
            # Aggregate once up front so a record that breaks aggregation
            # fails this refresh instead of a later read.
            compute_stats(
                self.catalog,
                GeoLevel.WORLD,
                [c.id for c in self.catalog.continents],
                events,
            )
        except asyncio.TimeoutError:
            return self._fail(f"event fetch timed out after {self.fetch_timeout:g}s")
        except Exception as exc:
            return self._fail(str(exc) or exc.__class__.__name__)

        if self._snapshot_started is not None and started < self._snapshot_started:
            logger.info("Discarding stale stats snapshot fetched at %s", started.isoformat())
            return False

        self._events = events
        self._memo.clear()
        self._snapshot_started = started
        self.last_updated = self._clock()
        self.last_error = None
        logger.info("Stats refreshed: %d events in the last %s", len(events), self.window)
        return True

    def _fail(self, message: str) -> bool:
        # Previous snapshot stays in place; callers only see the advisory error
        self.last_error = message
        logger.warning("Stats refresh failed, keeping previous snapshot: %s", message)
        return False

    # ── Background task ───────────────────────────────────────────────────────

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="stats-refresher")
        logger.info("Stats refresher started (every %gs)", self.refresh_interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Stats refresher stopped")

    async def _run(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self.refresh_interval)


@lru_cache(maxsize=1)
def get_stats_aggregator() -> StatsAggregator:
    """FastAPI dependency — the process-wide aggregator over MongoDB stories."""
    return StatsAggregator(get_catalog(), MongoEventSource(get_db))
