"""
geo.py — Pydantic schemas for the static geographic catalog.

World → Continent → Country → State → City → Locality

Every level is a frozen model with extra fields forbidden, so the bundled
catalog.json is checked field-by-field when it is loaded and nothing can
mutate a node afterwards. Child collections are tuples for the same reason.

Identity rules (enforced by services/catalog.py at load time):
  - Continent.id, Country.id and Country.code are globally unique
  - State.id is unique within its country, City.id within its state,
    Locality.id within its city
  - A node's composite key is the chain of ids from its continent down,
    e.g. "asia/in/ka/bangalore/whitefield"
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class GeoLevel(str, Enum):
    """Hierarchy depth. WORLD is the virtual root above the continents."""

    WORLD = "world"
    CONTINENT = "continent"
    COUNTRY = "country"
    STATE = "state"
    CITY = "city"
    LOCALITY = "locality"

    @property
    def depth(self) -> int:
        return _DEPTHS[self]


_DEPTHS = {level: i for i, level in enumerate(GeoLevel)}

# The seven continent ids the catalog may use
CONTINENT_IDS = (
    "asia",
    "europe",
    "north-america",
    "south-america",
    "africa",
    "oceania",
    "antarctica",
)

LocalityKind = Literal["capital-area", "hub", "district", "area"]


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)


class Locality(_Node):
    """Leaf node inside a city."""
    kind: LocalityKind


class City(_Node):
    is_capital: bool = False  # capital of its state
    localities: tuple[Locality, ...] = ()


class State(_Node):
    code: Optional[str] = None
    cities: tuple[City, ...] = ()


class Country(_Node):
    code: str = Field(min_length=2, max_length=2)  # ISO 3166-1 alpha-2
    flag: str
    states: tuple[State, ...] = ()


class Continent(_Node):
    countries: tuple[Country, ...] = ()  # empty for Antarctica


class CatalogDocument(BaseModel):
    """Top-level shape of catalog.json."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str
    continents: tuple[Continent, ...]


# ── API views ─────────────────────────────────────────────────────────────────

class ContinentSummary(BaseModel):
    """A continent without its subtree, for list endpoints."""
    id: str
    name: str
    country_count: int


class CatalogSummary(BaseModel):
    """Node counts per level, computed in one pass over the catalog."""
    version: str
    continents: int
    countries: int
    states: int
    cities: int
    localities: int


class ResolvedLocation(BaseModel):
    """Result of a coordinate lookup against the bounding-box table."""
    country_code: str
    country: Country
    continent: Continent
