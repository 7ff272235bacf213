"""
resolver.py — Coarse (lat, lng) → country lookup via bounding boxes.

This is NOT geocoding. Each entry is the rough rectangle around one
country, checked in table order; the first rectangle containing the
point wins. Smaller countries come before the larger neighbours whose
rectangles overlap them (Qatar before Saudi Arabia, Switzerland before
France). Near borders the answer can be wrong, and anything outside
every rectangle resolves to None. Callers fall back to the world view
in that case; no retry is ever needed.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import NamedTuple, Optional

from geo_directory.models.geo import ResolvedLocation
from geo_directory.services.catalog import GeoCatalog, get_catalog

logger = logging.getLogger(__name__)


class BoundingBox(NamedTuple):
    country_code: str
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


# ── Bounding boxes (order matters: first match wins) ──────────────────────────

BOUNDING_BOXES: tuple[BoundingBox, ...] = (
    # Asia
    BoundingBox("SG",   1.15,   1.48, 103.60, 104.10),
    BoundingBox("QA",  24.40,  26.20,  50.70,  51.70),
    BoundingBox("AE",  22.60,  26.10,  51.50,  56.40),
    BoundingBox("SA",  16.30,  32.20,  34.50,  55.70),
    BoundingBox("KR",  33.10,  38.60, 125.00, 129.60),
    BoundingBox("JP",  24.00,  45.60, 122.90, 145.90),
    BoundingBox("IN",   6.50,  35.50,  68.10,  97.40),
    BoundingBox("CN",  18.20,  53.60,  73.50, 134.80),
    # Europe
    BoundingBox("CH",  45.80,  47.80,   5.90,  10.50),
    BoundingBox("NL",  50.70,  53.60,   3.30,   7.30),
    BoundingBox("GB",  49.90,  60.90,  -8.20,   1.80),
    BoundingBox("FR",  42.30,  51.10,  -5.20,   8.20),
    BoundingBox("DE",  47.30,  55.10,   5.90,  15.00),
    BoundingBox("IT",  36.60,  47.10,   6.60,  18.50),
    BoundingBox("ES",  36.00,  43.80,  -9.30,   3.30),
    # North America
    BoundingBox("US",  24.50,  49.40, -124.80, -66.90),
    BoundingBox("CA",  41.70,  83.10, -141.00, -52.60),
    BoundingBox("MX",  14.50,  32.70, -118.40, -86.70),
    # South America
    BoundingBox("CL", -56.00, -17.50,  -75.70, -66.40),
    BoundingBox("AR", -55.10, -21.80,  -73.60, -53.60),
    BoundingBox("CO",  -4.20,  12.50,  -79.00, -66.90),
    BoundingBox("BR", -33.80,   5.30,  -74.00, -34.80),
    # Africa
    BoundingBox("ZA", -34.90, -22.10,  16.40,  32.90),
    BoundingBox("NG",   4.20,  13.90,   2.70,  14.70),
    BoundingBox("KE",  -4.70,   5.00,  33.90,  41.90),
    BoundingBox("EG",  22.00,  31.70,  24.70,  36.90),
    # Oceania
    BoundingBox("NZ", -47.30, -34.40, 166.40, 178.60),
    BoundingBox("AU", -43.70, -10.60, 113.30, 153.60),
)


class CoordinateResolver:
    """Maps coordinates onto catalog countries using BOUNDING_BOXES."""

    def __init__(
        self,
        catalog: GeoCatalog,
        boxes: tuple[BoundingBox, ...] = BOUNDING_BOXES,
    ) -> None:
        self.catalog = catalog
        # Boxes for countries the catalog doesn't carry can never be returned
        self.boxes = tuple(b for b in boxes if catalog.get_country_by_code(b.country_code))

    def resolve(self, lat: float, lng: float) -> Optional[ResolvedLocation]:
        for box in self.boxes:
            if box.contains(lat, lng):
                country = self.catalog.get_country_by_code(box.country_code)
                continent = self.catalog.continent_for_country_code(box.country_code)
                return ResolvedLocation(
                    country_code=country.code,
                    country=country,
                    continent=continent,
                )
        logger.debug("No bounding box matched (%.3f, %.3f)", lat, lng)
        return None


@lru_cache(maxsize=1)
def get_resolver() -> CoordinateResolver:
    return CoordinateResolver(get_catalog())
