import random

import pytest
from asgiref.sync import async_to_sync

from datastore.records import FilterCriteria, PropertyType
from listings.filters import (
    active_filter_count,
    apply_filters,
    drop_inactive,
    is_browse_all,
    matches,
    normalize_filters,
    to_conditions,
)

AMENITIES = ["Gym", "Pool", "Parking", "Pet Friendly", "Fireplace", "Garden", "Rooftop Deck", "Concierge", "Elevator"]


def test_empty_equivalent_filters_normalize_to_browse_all():
    raw = {"priceMin": "", "propertyTypes": []}
    assert drop_inactive(raw) == {}
    assert normalize_filters(raw) == FilterCriteria()
    assert is_browse_all(raw)
    assert active_filter_count(raw) == 0


def test_inactive_values_are_dropped():
    raw = {
        "price_min": None,
        "price_max": "  ",
        "property_types": [""],
        "amenities": [],
        "query": "",
        "bedrooms_min": 2,
        "unknown": "x",
    }
    assert drop_inactive(raw) == {"bedrooms_min": 2}
    assert active_filter_count(raw) == 1


def test_zero_is_an_active_value():
    assert normalize_filters({"price_min": 0}).price_min == 0
    assert active_filter_count({"price_min": 0}) == 1


def test_normalize_coerces_and_canonicalizes():
    criteria = normalize_filters({
        "priceMin": "100000",
        "price_max": "250000.5",
        "propertyTypes": ["house", "condo", "house"],
        "bedrooms_min": "3",
        "amenities": "Pool, Gym",
        "query": "  Oak  ",
    })
    assert criteria.price_min == 100000
    assert criteria.price_max == 250000.5
    assert criteria.property_types == ("condo", "house")
    assert criteria.bedrooms_min == 3
    assert criteria.amenities == ("Gym", "Pool")
    assert criteria.query == "Oak"
    assert active_filter_count(criteria) == 6


def test_normalize_is_deterministic_regardless_of_order():
    a = normalize_filters({"property_types": ["land", "condo"], "amenities": ["Pool", "Gym"]})
    b = normalize_filters({"amenities": ["Gym", "Pool"], "property_types": ["condo", "land"]})
    assert a == b
    assert a.as_dict() == b.as_dict()


@pytest.mark.parametrize("raw", [
    {"price_min": "abc"},
    {"bedrooms_min": "2.5"},
    {"price_max": True},
    {"price_min": "Infinity"},
    {"price_max": float("nan")},
    {"bedrooms_min": "1e999"},
])
def test_normalize_rejects_garbage(raw):
    with pytest.raises(ValueError):
        normalize_filters(raw)


def test_amenities_use_any_semantics(property_factory):
    pool = property_factory(1, amenities=("Pool",))
    gym = property_factory(2, amenities=("Gym", "Parking"))
    bare = property_factory(3, amenities=())
    criteria = normalize_filters({"amenities": ["Pool", "Gym"]})
    assert apply_filters([pool, gym, bare], criteria) == [pool, gym]


def test_query_matches_title_address_or_description(property_factory):
    by_title = property_factory(1, title="Sunny LOFT")
    by_address = property_factory(2, address="12 Loft Street")
    by_description = property_factory(3, description="an airy loft conversion")
    neither = property_factory(4)
    criteria = normalize_filters({"query": "loft"})
    assert apply_filters([by_title, by_address, by_description, neither], criteria) == [
        by_title, by_address, by_description,
    ]


def test_rules_are_combined_with_and(property_factory):
    cheap_house = property_factory(1, price=150000, property_type="house", bedrooms=3)
    cheap_condo = property_factory(2, price=150000, property_type="condo", bedrooms=3)
    pricey_house = property_factory(3, price=900000, property_type="house", bedrooms=3)
    criteria = normalize_filters({"price_max": 200000, "property_types": ["house"], "bedrooms_min": 2})
    assert apply_filters([cheap_house, cheap_condo, pricey_house], criteria) == [cheap_house]


def test_to_conditions_covers_backend_expressible_rules():
    criteria = normalize_filters({
        "price_min": 100, "price_max": 200, "property_types": ["house", "condo"],
        "bedrooms_min": 1, "bathrooms_min": 1, "square_feet_min": 500,
        "amenities": ["Pool"], "query": "oak",
    })
    payloads = [c.as_payload() for c in to_conditions(criteria)]
    assert {"FieldName": "price_c", "Operator": "GreaterThanOrEqualTo", "Values": [100], "Include": True} in payloads
    assert {"FieldName": "price_c", "Operator": "LessThanOrEqualTo", "Values": [200], "Include": True} in payloads
    assert {"FieldName": "property_type_c", "Operator": "ExactMatch", "Values": ["condo", "house"], "Include": True} in payloads
    assert len(payloads) == 6
    assert not any(p["FieldName"] in ("amenities_c", "title_c") for p in payloads)


def _random_filters(rng):
    raw = {}
    if rng.random() < 0.4:
        raw["price_min"] = rng.choice([0, 200000, 400000, 600000, ""])
    if rng.random() < 0.4:
        raw["price_max"] = rng.choice([300000, 500000, 900000, 2000000, ""])
    if rng.random() < 0.4:
        raw["property_types"] = rng.sample(PropertyType.values, rng.randint(0, 3))
    if rng.random() < 0.3:
        raw["bedrooms_min"] = rng.randint(0, 5)
    if rng.random() < 0.3:
        raw["bathrooms_min"] = rng.randint(0, 4)
    if rng.random() < 0.3:
        raw["square_feet_min"] = rng.choice([0, 800, 1500, 3000])
    if rng.random() < 0.3:
        raw["amenities"] = rng.sample(AMENITIES, rng.randint(0, 3))
    if rng.random() < 0.3:
        raw["query"] = rng.choice(["condo", "San Francisco", "oak", "VIEWS", "", "zzz"])
    return raw


def _satisfies_every_rule(p, c):
    return (
        (c.price_min is None or p.price >= c.price_min)
        and (c.price_max is None or p.price <= c.price_max)
        and (not c.property_types or p.property_type in c.property_types)
        and (c.bedrooms_min is None or p.bedrooms >= c.bedrooms_min)
        and (c.bathrooms_min is None or p.bathrooms >= c.bathrooms_min)
        and (c.square_feet_min is None or p.square_feet >= c.square_feet_min)
        and (not c.amenities or any(a in p.amenities for a in c.amenities))
        and (not c.query or any(
            c.query.lower() in text.lower() for text in (p.title, p.address, p.description)
        ))
    )


@pytest.mark.parametrize("seed", range(25))
def test_search_returns_exactly_the_matching_properties(store, seed):
    rng = random.Random(seed)
    everything = async_to_sync(store.list_all)()
    for _ in range(20):
        criteria = normalize_filters(_random_filters(rng))
        found = {p.id for p in async_to_sync(store.search)(criteria)}
        expected = {p.id for p in everything if _satisfies_every_rule(p, criteria)}
        assert found == expected, criteria
        assert all(matches(p, criteria) == (p.id in expected) for p in everything)
