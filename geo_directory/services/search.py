"""
search.py — Free-text location search across all five catalog levels.

Matching is a case-insensitive substring test on the display name at
every level; countries also match on exact ISO code ("in", "IN").
Results come back in discovery order of a depth-first walk
(continent → country → state → city → locality, catalog order). There is
no relevance score and no deduplication.

The walk is a generator, so scanning stops as soon as `limit` results
have been produced.
"""

from functools import lru_cache
from itertools import islice
from typing import Iterator

from geo_directory.core.config import settings
from geo_directory.models.search import SearchResult
from geo_directory.services.catalog import GeoCatalog, get_catalog


class LocationSearchIndex:
    """Pure, side-effect-free search over an immutable GeoCatalog."""

    def __init__(self, catalog: GeoCatalog, min_query_length: int | None = None) -> None:
        self.catalog = catalog
        self.min_query_length = (
            min_query_length if min_query_length is not None else settings.search_min_query_length
        )

    def search(self, query: str, limit: int = 20) -> list[SearchResult]:
        needle = (query or "").strip().lower()
        if len(needle) < self.min_query_length or limit <= 0:
            return []
        return list(islice(self._walk(needle), limit))

    def _walk(self, needle: str) -> Iterator[SearchResult]:
        for continent in self.catalog.continents:
            if needle in continent.name.lower():
                yield SearchResult(
                    type="continent",
                    id=continent.id,
                    name=continent.name,
                    path=[continent.name],
                    continent_id=continent.id,
                )

            for country in continent.countries:
                country_path = [continent.name, country.name]
                if needle in country.name.lower() or needle == country.code.lower():
                    yield SearchResult(
                        type="country",
                        id=country.id,
                        name=country.name,
                        path=country_path,
                        continent_id=continent.id,
                        country_id=country.id,
                        country_code=country.code,
                        flag=country.flag,
                    )

                for state in country.states:
                    state_path = country_path + [state.name]
                    if needle in state.name.lower():
                        yield SearchResult(
                            type="state",
                            id=state.id,
                            name=state.name,
                            path=state_path,
                            continent_id=continent.id,
                            country_id=country.id,
                            country_code=country.code,
                            state_id=state.id,
                        )

                    for city in state.cities:
                        city_path = state_path + [city.name]
                        if needle in city.name.lower():
                            yield SearchResult(
                                type="city",
                                id=city.id,
                                name=city.name,
                                path=city_path,
                                continent_id=continent.id,
                                country_id=country.id,
                                country_code=country.code,
                                state_id=state.id,
                                city_id=city.id,
                            )

                        for locality in city.localities:
                            if needle in locality.name.lower():
                                yield SearchResult(
                                    type="locality",
                                    id=locality.id,
                                    name=locality.name,
                                    path=city_path + [locality.name],
                                    continent_id=continent.id,
                                    country_id=country.id,
                                    country_code=country.code,
                                    state_id=state.id,
                                    city_id=city.id,
                                )


@lru_cache(maxsize=1)
def get_search_index() -> LocationSearchIndex:
    return LocationSearchIndex(get_catalog())
