"""
catalog.py — The static geographic catalog and its lookup indices.

USAGE
─────
    from geo_directory.services.catalog import get_catalog

    catalog = get_catalog()
    india   = catalog.get_country_by_code("in")       # case-insensitive
    karn    = catalog.get_state(india.id, "ka")
    catalog.continent_id_for_code("IN")               # → "asia"

The catalog is loaded from a versioned JSON asset exactly once per
process and is immutable afterwards. Every lookup returns None on a
miss — stale deep links and partial navigation make misses routine, so
they are never exceptional. The only error this module raises is
CatalogValidationError, at load time, when the asset itself is broken.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from geo_directory.core.config import settings
from geo_directory.models.geo import (
    CONTINENT_IDS,
    CatalogDocument,
    CatalogSummary,
    City,
    Continent,
    ContinentSummary,
    Country,
    Locality,
    State,
)

logger = logging.getLogger(__name__)

BUNDLED_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "catalog.json"


class CatalogValidationError(ValueError):
    """The catalog asset is malformed or violates an identity rule."""


class GeoCatalog:
    """
    Read-only accessors over a validated CatalogDocument.

    Indices built once in __init__:
      _continents      continent id → Continent
      _countries       country id → Country
      _codes           uppercased ISO code → Country
      _code_continent  uppercased ISO code → continent id (the reverse index)
    """

    def __init__(self, document: CatalogDocument) -> None:
        _validate_identity(document)
        self.version = document.version
        self.continents: tuple[Continent, ...] = document.continents

        self._continents: dict[str, Continent] = {c.id: c for c in document.continents}
        self._countries: dict[str, Country] = {}
        self._codes: dict[str, Country] = {}
        self._code_continent: dict[str, str] = {}
        for continent in document.continents:
            for country in continent.countries:
                code = country.code.upper()
                self._countries[country.id] = country
                self._codes[code] = country
                self._code_continent[code] = continent.id

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def from_json(cls, raw: str | bytes) -> "GeoCatalog":
        try:
            document = CatalogDocument.model_validate_json(raw)
        except ValidationError as exc:
            raise CatalogValidationError(f"Malformed catalog: {exc}") from exc
        return cls(document)

    @classmethod
    def from_path(cls, path: Path | str) -> "GeoCatalog":
        return cls.from_json(Path(path).read_bytes())

    @classmethod
    def from_dict(cls, data: dict) -> "GeoCatalog":
        return cls.from_json(json.dumps(data))

    # ── Lookups ───────────────────────────────────────────────────────────────

    def get_continent(self, continent_id: str) -> Optional[Continent]:
        return self._continents.get(continent_id)

    def get_country(self, country_id: str) -> Optional[Country]:
        return self._countries.get(country_id)

    def get_country_by_code(self, code: str) -> Optional[Country]:
        return self._codes.get(code.upper()) if code else None

    def get_state(self, country_id: str, state_id: str) -> Optional[State]:
        country = self.get_country(country_id)
        if country is None:
            return None
        return next((s for s in country.states if s.id == state_id), None)

    def get_city(self, country_id: str, state_id: str, city_id: str) -> Optional[City]:
        state = self.get_state(country_id, state_id)
        if state is None:
            return None
        return next((c for c in state.cities if c.id == city_id), None)

    def get_locality(
        self, country_id: str, state_id: str, city_id: str, locality_id: str
    ) -> Optional[Locality]:
        city = self.get_city(country_id, state_id, city_id)
        if city is None:
            return None
        return next((loc for loc in city.localities if loc.id == locality_id), None)

    def all_countries(self) -> list[Country]:
        return [country for continent in self.continents for country in continent.countries]

    def continent_id_for_code(self, code: Optional[str]) -> Optional[str]:
        """O(1) reverse lookup used on every event during stats aggregation."""
        if not code:
            return None
        return self._code_continent.get(code.upper())

    def continent_for_country_code(self, code: str) -> Optional[Continent]:
        continent_id = self.continent_id_for_code(code)
        return self._continents.get(continent_id) if continent_id else None

    def continent_for_country(self, country_id: str) -> Optional[Continent]:
        country = self.get_country(country_id)
        return self.continent_for_country_code(country.code) if country else None

    # ── Derived views ─────────────────────────────────────────────────────────

    def path(
        self,
        continent_id: str,
        country_id: Optional[str] = None,
        state_id: Optional[str] = None,
        city_id: Optional[str] = None,
        locality_id: Optional[str] = None,
    ) -> Optional[list[str]]:
        """
        Root-to-node name chain for the node addressed by the given ids.

        Ids must form a prefix (no state without a country, etc.) and each
        must exist under its parent, otherwise None.
        """
        ids = [country_id, state_id, city_id, locality_id]
        given = [i for i in ids if i is not None]
        if ids[: len(given)] != given:
            return None

        continent = self.get_continent(continent_id)
        if continent is None:
            return None
        names = [continent.name]
        if country_id is None:
            return names

        country = next((c for c in continent.countries if c.id == country_id), None)
        if country is None:
            return None
        names.append(country.name)
        if state_id is None:
            return names

        state = self.get_state(country_id, state_id)
        if state is None:
            return None
        names.append(state.name)
        if city_id is None:
            return names

        city = self.get_city(country_id, state_id, city_id)
        if city is None:
            return None
        names.append(city.name)
        if locality_id is None:
            return names

        locality = self.get_locality(country_id, state_id, city_id, locality_id)
        if locality is None:
            return None
        names.append(locality.name)
        return names

    def continent_summaries(self) -> list[ContinentSummary]:
        return [
            ContinentSummary(id=c.id, name=c.name, country_count=len(c.countries))
            for c in self.continents
        ]

    def summary(self) -> CatalogSummary:
        countries = states = cities = localities = 0
        for continent in self.continents:
            for country in continent.countries:
                countries += 1
                for state in country.states:
                    states += 1
                    for city in state.cities:
                        cities += 1
                        localities += len(city.localities)
        return CatalogSummary(
            version=self.version,
            continents=len(self.continents),
            countries=countries,
            states=states,
            cities=cities,
            localities=localities,
        )


def _validate_identity(document: CatalogDocument) -> None:
    """
    Fail fast on any identifier collision.

    Composite keys (parent ids + local slug) must be unique, country ids
    and ISO codes must be unique across the whole catalog, and continent
    ids must come from the fixed set of seven.
    """
    seen_keys: set[str] = set()
    country_ids: set[str] = set()
    country_codes: set[str] = set()

    def claim(key: str) -> None:
        if key in seen_keys:
            raise CatalogValidationError(f"Duplicate catalog key: {key}")
        seen_keys.add(key)

    for continent in document.continents:
        if continent.id not in CONTINENT_IDS:
            raise CatalogValidationError(f"Unknown continent id: {continent.id}")
        claim(continent.id)
        for country in continent.countries:
            if country.id in country_ids:
                raise CatalogValidationError(f"Duplicate country id: {country.id}")
            code = country.code.upper()
            if code in country_codes:
                raise CatalogValidationError(f"Duplicate country code: {code}")
            country_ids.add(country.id)
            country_codes.add(code)

            country_key = f"{continent.id}/{country.id}"
            claim(country_key)
            for state in country.states:
                state_key = f"{country_key}/{state.id}"
                claim(state_key)
                for city in state.cities:
                    city_key = f"{state_key}/{city.id}"
                    claim(city_key)
                    for locality in city.localities:
                        claim(f"{city_key}/{locality.id}")


@lru_cache(maxsize=1)
def get_catalog() -> GeoCatalog:
    """Load and validate the configured catalog once per process."""
    path = Path(settings.catalog_path) if settings.catalog_path else BUNDLED_CATALOG_PATH
    catalog = GeoCatalog.from_path(path)
    s = catalog.summary()
    logger.info(
        "Catalog %s loaded from %s: %d continents, %d countries, %d states, %d cities",
        s.version, path.name, s.continents, s.countries, s.states, s.cities,
    )
    return catalog
