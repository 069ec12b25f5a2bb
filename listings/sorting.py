from datetime import date, datetime

from datastore.mapping import to_date

NEWEST = "newest"
PRICE_LOW = "price-low"
PRICE_HIGH = "price-high"
BEDS_HIGH = "beds-high"
SQFT_HIGH = "sqft-high"

SORT_CHOICES = [
    (NEWEST, "Newest First"),
    (PRICE_LOW, "Price: Low to High"),
    (PRICE_HIGH, "Price: High to Low"),
    (BEDS_HIGH, "Most Bedrooms"),
    (SQFT_HIGH, "Largest First"),
]
SORT_KEYS = [key for key, _ in SORT_CHOICES]
DEFAULT_SORT = NEWEST


def _listing_day(prop):
    value = prop.listing_date
    if not isinstance(value, (date, datetime)):
        value = to_date(value)
    # missing / unparseable dates sort as the oldest possible listing
    return value or date.min


# sort key -> (key function, descending)
_ORDERINGS = {
    NEWEST: (_listing_day, True),
    PRICE_LOW: (lambda p: p.price or 0, False),
    PRICE_HIGH: (lambda p: p.price or 0, True),
    BEDS_HIGH: (lambda p: p.bedrooms or 0, True),
    SQFT_HIGH: (lambda p: p.square_feet or 0, True),
}


def sort_properties(properties, sort_key=DEFAULT_SORT):
    """
    Return a new list ordered by `sort_key`; the input is left untouched.
    The sort is stable, so equal keys keep their input order. Unknown keys
    fall back to newest first.
    """
    key, descending = _ORDERINGS.get(sort_key, _ORDERINGS[DEFAULT_SORT])
    return sorted(properties, key=key, reverse=descending)
