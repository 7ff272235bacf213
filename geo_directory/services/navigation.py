"""
navigation.py — Drill-down navigation state machine.

States and transitions
──────────────────────
    WORLD ──drill(continent)──▶ CONTINENT ──drill(country)──▶ COUNTRY
    COUNTRY ──drill(state)──▶ STATE ──drill(city)──▶ CITY
    CITY ──drill(locality)──▶ (exit: hand a StoryFilter to the listing,
                               the machine itself stays at CITY)

    breadcrumb_jump(level, id)   truncate the chain to `level`
    reset()                      breadcrumb_jump(WORLD)
    auto_detect(code)            one-shot jump to COUNTRY, at most once
    restore(link)                rebuild a position from a deep link

Invalid requests never raise. They fail closed: the machine lands on the
deepest ancestor that is still valid (or stays put) and the transition
reports applied=False.

Each transition builds a fresh frozen NavigationState and swaps it in
with a single assignment, so readers never see a half-applied change.
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from geo_directory.models.geo import City, Continent, Country, GeoLevel, State
from geo_directory.models.navigation import (
    BreadcrumbItem,
    NavigationItem,
    NavigationLink,
    NavigationState,
    StoryFilter,
)
from geo_directory.services.catalog import GeoCatalog, get_catalog
from geo_directory.services.resolver import CoordinateResolver

logger = logging.getLogger(__name__)

# Levels the machine can sit at (LOCALITY is an exit, not a state)
_CHAIN = (GeoLevel.WORLD, GeoLevel.CONTINENT, GeoLevel.COUNTRY, GeoLevel.STATE, GeoLevel.CITY)


@dataclass
class Transition:
    applied: bool
    exit: Optional[StoryFilter] = None


@dataclass
class _Selection:
    """The selection chain resolved to catalog nodes."""
    continent: Optional[Continent] = None
    country: Optional[Country] = None
    state: Optional[State] = None
    city: Optional[City] = None


class NavigationStateMachine:
    def __init__(self, catalog: GeoCatalog, session_id: Optional[str] = None) -> None:
        self.catalog = catalog
        self.session_id = session_id or uuid.uuid4().hex
        self._state = NavigationState()
        self._auto_detect_used = False

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def auto_detect_used(self) -> bool:
        return self._auto_detect_used

    # ── Transitions ───────────────────────────────────────────────────────────

    def drill_down(self, item_id: str) -> Transition:
        """Select one of the currently visible items."""
        sel = self._selection()
        level = self._state.level

        if level == GeoLevel.WORLD:
            continent = self.catalog.get_continent(item_id)
            if continent is None:
                return self._reject("drill_down", item_id)
            self._state = NavigationState(level=GeoLevel.CONTINENT, continent_id=continent.id)

        elif level == GeoLevel.CONTINENT:
            country = next((c for c in sel.continent.countries if c.id == item_id), None)
            if country is None:
                return self._reject("drill_down", item_id)
            self._state = self._state.model_copy(
                update={"level": GeoLevel.COUNTRY, "country_id": country.id}
            )

        elif level == GeoLevel.COUNTRY:
            state = next((s for s in sel.country.states if s.id == item_id), None)
            if state is None:
                return self._reject("drill_down", item_id)
            self._state = self._state.model_copy(
                update={"level": GeoLevel.STATE, "state_id": state.id}
            )

        elif level == GeoLevel.STATE:
            city = next((c for c in sel.state.cities if c.id == item_id), None)
            if city is None:
                return self._reject("drill_down", item_id)
            self._state = self._state.model_copy(
                update={"level": GeoLevel.CITY, "city_id": city.id}
            )

        else:  # CITY: choosing a locality leaves the machine
            locality = next((loc for loc in sel.city.localities if loc.id == item_id), None)
            if locality is None:
                return self._reject("drill_down", item_id)
            exit_filter = self.story_filter().model_copy(update={"locality": locality.id})
            return Transition(applied=True, exit=exit_filter)

        return Transition(applied=True)

    def breadcrumb_jump(self, level: GeoLevel, node_id: Optional[str] = None) -> Transition:
        """
        Truncate the selection chain to `level`.

        node_id, when given, must match the chain's id at that level. A
        mismatched id is never followed, even when it names a real node:
        it is a stale request and the chain is cut back to the parent of
        `level` instead (never deeper than it already was). So a jump to
        continent "europe" while "asia" is selected lands on WORLD, and a
        level deeper than the current one is treated the same way.
        """
        if level == GeoLevel.WORLD:
            self._state = NavigationState()
            return Transition(applied=True)
        if level not in _CHAIN:
            return self._reject("breadcrumb_jump", f"{level.value}:{node_id}")

        chain_id = self._chain_ids().get(level)
        if chain_id is None or (node_id is not None and node_id != chain_id):
            parent = _CHAIN[_CHAIN.index(level) - 1]
            if parent.depth < self._state.level.depth:
                self._state = self._truncate(parent)
            return self._reject("breadcrumb_jump", f"{level.value}:{node_id}")

        self._state = self._truncate(level)
        return Transition(applied=True)

    def reset(self) -> Transition:
        return self.breadcrumb_jump(GeoLevel.WORLD)

    def auto_detect(self, country_code: str, continent_id: Optional[str] = None) -> Transition:
        """
        Jump straight to a detected country, at most once per session.

        The continent always comes from the catalog; a caller-supplied
        continent that disagrees is ignored rather than trusted.
        """
        if self._auto_detect_used:
            return Transition(applied=False)
        country = self.catalog.get_country_by_code(country_code)
        continent = self.catalog.continent_for_country_code(country_code)
        if country is None or continent is None:
            return self._reject("auto_detect", country_code)
        if continent_id is not None and continent_id != continent.id:
            logger.debug("auto_detect: continent %s overridden by catalog (%s)", continent_id, continent.id)

        self._auto_detect_used = True
        self._state = NavigationState(
            level=GeoLevel.COUNTRY, continent_id=continent.id, country_id=country.id
        )
        return Transition(applied=True)

    def auto_detect_from_coordinates(
        self, resolver: CoordinateResolver, lat: float, lng: float
    ) -> Transition:
        if self._auto_detect_used:
            return Transition(applied=False)
        match = resolver.resolve(lat, lng)
        if match is None:
            # Degraded resolution: stay where we are (normally WORLD)
            return Transition(applied=False)
        return self.auto_detect(match.country_code, match.continent.id)

    def restore(self, link: NavigationLink) -> Transition:
        """
        Rebuild a drill position from addressable identifiers.

        Walks down continent → country → state → city and stops at the
        first identifier that doesn't resolve under its parent. A link
        with a country but no continent takes the country's continent.
        """
        continent_id = link.continent
        if continent_id is None and link.country:
            continent_id = self.catalog.continent_id_for_code(link.country)
        requested = sum(1 for part in (continent_id, link.country, link.state, link.city) if part)

        state = NavigationState()
        resolved = 0
        continent = self.catalog.get_continent(continent_id) if continent_id else None
        if continent is not None:
            state = NavigationState(level=GeoLevel.CONTINENT, continent_id=continent.id)
            resolved = 1
            code = (link.country or "").upper()
            country = next((c for c in continent.countries if c.code.upper() == code), None)
            if country is not None:
                state = state.model_copy(update={"level": GeoLevel.COUNTRY, "country_id": country.id})
                resolved = 2
                region = next((s for s in country.states if s.id == link.state), None)
                if region is not None:
                    state = state.model_copy(update={"level": GeoLevel.STATE, "state_id": region.id})
                    resolved = 3
                    city = next((c for c in region.cities if c.id == link.city), None)
                    if city is not None:
                        state = state.model_copy(update={"level": GeoLevel.CITY, "city_id": city.id})
                        resolved = 4

        self._state = state
        complete = resolved == requested
        if not complete:
            logger.info("Deep link %s restored only to %s", link.model_dump(exclude_none=True), state.level.value)
        return Transition(applied=complete)

    # ── Derived views ─────────────────────────────────────────────────────────

    def current_items(self) -> list[NavigationItem]:
        """Children of the deepest selected node, or all continents at WORLD."""
        sel = self._selection()
        if sel.city is not None:
            return [
                NavigationItem(level=GeoLevel.LOCALITY, id=loc.id, name=loc.name, kind=loc.kind)
                for loc in sel.city.localities
            ]
        if sel.state is not None:
            return [
                NavigationItem(
                    level=GeoLevel.CITY,
                    id=c.id,
                    name=c.name,
                    is_capital=c.is_capital,
                    child_count=len(c.localities),
                )
                for c in sel.state.cities
            ]
        if sel.country is not None:
            return [
                NavigationItem(
                    level=GeoLevel.STATE, id=s.id, name=s.name, code=s.code, child_count=len(s.cities)
                )
                for s in sel.country.states
            ]
        if sel.continent is not None:
            return [
                NavigationItem(
                    level=GeoLevel.COUNTRY,
                    id=c.id,
                    name=c.name,
                    code=c.code,
                    flag=c.flag,
                    child_count=len(c.states),
                )
                for c in sel.continent.countries
            ]
        return [
            NavigationItem(level=GeoLevel.CONTINENT, id=c.id, name=c.name, child_count=len(c.countries))
            for c in self.catalog.continents
        ]

    def breadcrumbs(self) -> list[BreadcrumbItem]:
        sel = self._selection()
        pairs = (
            (GeoLevel.CONTINENT, sel.continent),
            (GeoLevel.COUNTRY, sel.country),
            (GeoLevel.STATE, sel.state),
            (GeoLevel.CITY, sel.city),
        )
        return [BreadcrumbItem(level=level, id=node.id, name=node.name) for level, node in pairs if node is not None]

    def sibling_keys(self) -> Optional[tuple[GeoLevel, list[str]]]:
        """
        (item level, stats keys) for the visible items, or None below COUNTRY.

        Keys are what the stats layer joins on: continent ids, country
        ISO codes, and state names (matched against free-text cities).
        """
        if self._state.level.depth > GeoLevel.COUNTRY.depth:
            return None
        items = self.current_items()
        if not items:
            level = _CHAIN[_CHAIN.index(self._state.level) + 1]
            return level, []
        return items[0].level, [stats_key(item) for item in items]

    def to_link(self) -> NavigationLink:
        sel = self._selection()
        return NavigationLink(
            continent=sel.continent.id if sel.continent else None,
            country=sel.country.code if sel.country else None,
            state=sel.state.id if sel.state else None,
            city=sel.city.id if sel.city else None,
        )

    def story_filter(self) -> StoryFilter:
        sel = self._selection()
        return StoryFilter(
            region=sel.continent.id if sel.continent else None,
            country=sel.country.code if sel.country else None,
            state=sel.state.name if sel.state else None,
            city=sel.city.name if sel.city else None,
        )

    # ── Internals ─────────────────────────────────────────────────────────────

    def _selection(self) -> _Selection:
        s = self._state
        sel = _Selection()
        if s.continent_id:
            sel.continent = self.catalog.get_continent(s.continent_id)
        if s.country_id:
            sel.country = self.catalog.get_country(s.country_id)
        if s.country_id and s.state_id:
            sel.state = self.catalog.get_state(s.country_id, s.state_id)
        if s.country_id and s.state_id and s.city_id:
            sel.city = self.catalog.get_city(s.country_id, s.state_id, s.city_id)
        return sel

    def _chain_ids(self) -> dict[GeoLevel, str]:
        s = self._state
        ids = {
            GeoLevel.CONTINENT: s.continent_id,
            GeoLevel.COUNTRY: s.country_id,
            GeoLevel.STATE: s.state_id,
            GeoLevel.CITY: s.city_id,
        }
        return {level: node_id for level, node_id in ids.items() if node_id is not None}

    def _truncate(self, level: GeoLevel) -> NavigationState:
        keep = level.depth
        s = self._state
        return NavigationState(
            level=level,
            continent_id=s.continent_id if keep >= GeoLevel.CONTINENT.depth else None,
            country_id=s.country_id if keep >= GeoLevel.COUNTRY.depth else None,
            state_id=s.state_id if keep >= GeoLevel.STATE.depth else None,
            city_id=s.city_id if keep >= GeoLevel.CITY.depth else None,
        )

    def _reject(self, operation: str, detail: str) -> Transition:
        logger.debug("%s rejected at %s: %s", operation, self._state.level.value, detail)
        return Transition(applied=False)


def stats_key(item: NavigationItem) -> str:
    """The key a visible item's statistics are stored under."""
    if item.level in (GeoLevel.CONTINENT, GeoLevel.WORLD):
        return item.id
    if item.level == GeoLevel.COUNTRY:
        return (item.code or item.id).upper()
    return item.name


class NavigationSessionStore:
    """
    In-memory sessions for the HTTP surface.

    Sessions are never persisted. The oldest are evicted once max_sessions
    is reached.
    """

    def __init__(self, catalog: GeoCatalog, max_sessions: int = 10_000) -> None:
        self.catalog = catalog
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, NavigationStateMachine] = OrderedDict()

    def create(self) -> NavigationStateMachine:
        machine = NavigationStateMachine(self.catalog)
        self._sessions[machine.session_id] = machine
        while len(self._sessions) > self.max_sessions:
            self._sessions.popitem(last=False)
        return machine

    def get(self, session_id: str) -> Optional[NavigationStateMachine]:
        machine = self._sessions.get(session_id)
        if machine is not None:
            self._sessions.move_to_end(session_id)
        return machine

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache(maxsize=1)
def get_session_store() -> NavigationSessionStore:
    return NavigationSessionStore(get_catalog())
