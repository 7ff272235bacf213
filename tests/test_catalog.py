"""
test_catalog.py — GeoCatalog loading, identity validation and lookups.

Run:
    pytest tests/test_catalog.py -v
"""

import pytest

from geo_directory.models.geo import CONTINENT_IDS
from geo_directory.services.catalog import CatalogValidationError, GeoCatalog


def _tiny(**overrides):
    """A minimal valid catalog document, optionally with one continent replaced."""
    asia = {
        "id": "asia",
        "name": "Asia",
        "countries": [
            {
                "id": "in",
                "name": "India",
                "code": "IN",
                "flag": "🇮🇳",
                "states": [
                    {
                        "id": "ka",
                        "name": "Karnataka",
                        "cities": [
                            {
                                "id": "bangalore",
                                "name": "Bengaluru",
                                "is_capital": True,
                                "localities": [{"id": "whitefield", "name": "Whitefield", "kind": "hub"}],
                            }
                        ],
                    }
                ],
            }
        ],
    }
    asia.update(overrides)
    return {"version": "test", "continents": [asia, {"id": "antarctica", "name": "Antarctica", "countries": []}]}


# ── Loading ──────────────────────────────────────────────────────────────────

class TestLoading:

    def test_bundled_catalog_loads(self, catalog):
        assert [c.id for c in catalog.continents] == list(CONTINENT_IDS)

    def test_antarctica_has_no_countries(self, catalog):
        assert catalog.get_continent("antarctica").countries == ()

    def test_tiny_catalog_is_valid(self):
        catalog = GeoCatalog.from_dict(_tiny())
        assert catalog.get_country_by_code("IN").name == "India"

    def test_duplicate_state_id_rejected(self):
        data = _tiny()
        states = data["continents"][0]["countries"][0]["states"]
        states.append(dict(states[0], name="Karnataka Again"))
        with pytest.raises(CatalogValidationError, match="Duplicate catalog key"):
            GeoCatalog.from_dict(data)

    def test_duplicate_country_code_rejected_case_insensitively(self):
        data = _tiny()
        countries = data["continents"][0]["countries"]
        countries.append(dict(countries[0], id="in2", code="in"))
        with pytest.raises(CatalogValidationError, match="Duplicate country code"):
            GeoCatalog.from_dict(data)

    def test_duplicate_country_id_across_continents_rejected(self):
        data = _tiny()
        clone = dict(data["continents"][0]["countries"][0], code="XX")
        data["continents"][1]["countries"] = [clone]
        with pytest.raises(CatalogValidationError, match="Duplicate country id"):
            GeoCatalog.from_dict(data)

    def test_same_city_slug_allowed_in_different_states(self):
        data = _tiny()
        states = data["continents"][0]["countries"][0]["states"]
        states.append(dict(states[0], id="tn", name="Tamil Nadu"))
        catalog = GeoCatalog.from_dict(data)
        assert catalog.get_city("in", "tn", "bangalore") is not None

    def test_unknown_continent_rejected(self):
        with pytest.raises(CatalogValidationError, match="Unknown continent"):
            GeoCatalog.from_dict(_tiny(id="atlantis"))

    def test_unknown_field_rejected(self):
        data = _tiny()
        data["continents"][0]["population"] = 4_700_000_000
        with pytest.raises(CatalogValidationError, match="Malformed"):
            GeoCatalog.from_dict(data)

    def test_bad_locality_kind_rejected(self):
        data = _tiny()
        city = data["continents"][0]["countries"][0]["states"][0]["cities"][0]
        city["localities"][0]["kind"] = "suburb"
        with pytest.raises(CatalogValidationError):
            GeoCatalog.from_dict(data)

    def test_nodes_are_immutable(self, catalog):
        with pytest.raises(Exception):
            catalog.get_country("in").name = "Bharat"


# ── Lookups ──────────────────────────────────────────────────────────────────

class TestLookups:

    @pytest.mark.parametrize("code", ["IN", "in", "In"])
    def test_country_by_code_is_case_insensitive(self, catalog, code):
        assert catalog.get_country_by_code(code).id == "in"

    def test_every_country_code_case_insensitive(self, catalog):
        for country in catalog.all_countries():
            for variant in (country.code, country.code.lower(), country.code.upper()):
                assert catalog.get_country_by_code(variant) is country

    def test_misses_return_none(self, catalog):
        assert catalog.get_continent("atlantis") is None
        assert catalog.get_country("zz") is None
        assert catalog.get_country_by_code("ZZ") is None
        assert catalog.get_country_by_code("") is None
        assert catalog.get_state("in", "nowhere") is None
        assert catalog.get_state("zz", "ka") is None
        assert catalog.get_city("in", "ka", "nowhere") is None
        assert catalog.get_locality("in", "ka", "bangalore", "nowhere") is None

    def test_state_and_city_lookup(self, catalog):
        city = catalog.get_city("in", "ka", "bangalore")
        assert city.name == "Bengaluru"
        assert city.is_capital is True
        assert catalog.get_locality("in", "ka", "bangalore", "whitefield").kind == "hub"

    def test_reverse_index_covers_every_country(self, catalog):
        for continent in catalog.continents:
            for country in continent.countries:
                assert catalog.continent_id_for_code(country.code.upper()) == continent.id
                assert catalog.continent_id_for_code(country.code.lower()) == continent.id

    def test_reverse_index_miss(self, catalog):
        assert catalog.continent_id_for_code("ZZ") is None
        assert catalog.continent_id_for_code(None) is None

    def test_continent_for_country(self, catalog):
        assert catalog.continent_for_country_code("us").id == "north-america"
        assert catalog.continent_for_country("in").id == "asia"
        assert catalog.continent_for_country("zz") is None

    def test_all_countries_is_flattened_in_order(self, catalog):
        expected = [c for k in catalog.continents for c in k.countries]
        assert catalog.all_countries() == expected


# ── Derived views ────────────────────────────────────────────────────────────

class TestDerived:

    def test_path_of_locality(self, catalog):
        assert catalog.path("asia", "in", "ka", "bangalore", "whitefield") == [
            "Asia", "India", "Karnataka", "Bengaluru", "Whitefield",
        ]

    def test_path_length_matches_depth_everywhere(self, catalog):
        for continent in catalog.continents:
            assert catalog.path(continent.id) == [continent.name]
            for country in continent.countries:
                p = catalog.path(continent.id, country.id)
                assert p == [continent.name, country.name]
                for state in country.states:
                    p = catalog.path(continent.id, country.id, state.id)
                    assert len(p) == 3 and p[-1] == state.name
                    for city in state.cities:
                        p = catalog.path(continent.id, country.id, state.id, city.id)
                        assert len(p) == 4 and p[-1] == city.name and p[-2] == state.name

    def test_path_rejects_gaps_and_wrong_parents(self, catalog):
        assert catalog.path("asia", None, "ka") is None
        assert catalog.path("europe", "in") is None
        assert catalog.path("asia", "in", "ka", "mumbai") is None

    def test_summary_counts(self, catalog):
        s = catalog.summary()
        assert s.continents == 7
        assert s.countries == len(catalog.all_countries())
        assert s.states >= s.countries
        assert s.cities >= s.states
        assert s.version == catalog.version

    def test_continent_summaries(self, catalog):
        by_id = {c.id: c for c in catalog.continent_summaries()}
        assert by_id["antarctica"].country_count == 0
        assert by_id["asia"].country_count == len(catalog.get_continent("asia").countries)
