"""
Filter normalization and predicate translation.

A raw filter mapping (query string, JSON body, stored saved search) is reduced
to its canonical form: only "active" fields survive. A scalar is active unless
it is "", None or missing; a list is active when non-empty. The canonical form
decides browse-all vs search mode and the active-filter count, and every active
field maps to exactly one rule; rules are combined with AND.
"""
import math
from dataclasses import dataclass

from datastore.records import FilterCriteria

FILTER_FIELDS = {
    "price_min": "number",
    "price_max": "number",
    "property_types": "list",
    "bedrooms_min": "int",
    "bathrooms_min": "int",
    "square_feet_min": "int",
    "amenities": "list",
    "query": "text",
}

# Filters saved by the browser client are stored with camelCase keys
FIELD_ALIASES = {
    "priceMin": "price_min",
    "priceMax": "price_max",
    "propertyTypes": "property_types",
    "bedroomsMin": "bedrooms_min",
    "bathroomsMin": "bathrooms_min",
    "squareFeetMin": "square_feet_min",
}

# filter field -> (record column, operator) for the record-table backend
CONDITION_COLUMNS = {
    "price_min": ("price_c", "GreaterThanOrEqualTo"),
    "price_max": ("price_c", "LessThanOrEqualTo"),
    "property_types": ("property_type_c", "ExactMatch"),
    "bedrooms_min": ("bedrooms_c", "GreaterThanOrEqualTo"),
    "bathrooms_min": ("bathrooms_c", "GreaterThanOrEqualTo"),
    "square_feet_min": ("square_feet_c", "GreaterThanOrEqualTo"),
}


def is_active(value):
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return any(is_active(item) for item in value)
    return True


def drop_inactive(raw):
    """Canonical record as a plain dict: known fields that are active, aliases resolved."""
    cleaned = {}
    for key, value in (raw or {}).items():
        key = FIELD_ALIASES.get(key, key)
        if key not in FILTER_FIELDS or not is_active(value):
            continue
        if isinstance(value, str):
            value = value.strip()
        cleaned[key] = value
    return cleaned


def active_filter_count(raw):
    if hasattr(raw, "as_dict"):
        raw = raw.as_dict()
    return len(drop_inactive(raw))


def is_browse_all(raw):
    return active_filter_count(raw) == 0


def _to_number(value, key):
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            text = str(value).strip()
            number = int(text) if text.lstrip("-").isdigit() else float(text)
        except (TypeError, ValueError):
            raise ValueError(f"{key}: expected a number, got {value!r}")
    if isinstance(number, float) and not math.isfinite(number):
        raise ValueError(f"{key}: expected a finite number, got {value!r}")
    return number


def _to_int(value, key):
    number = _to_number(value, key)
    if number != int(number):
        raise ValueError(f"{key}: expected a whole number, got {value!r}")
    return int(number)


def _to_set(value):
    if isinstance(value, str):
        value = value.split(",")
    items = {str(item).strip() for item in value if is_active(item)}
    return tuple(sorted(items))


def normalize_filters(raw):
    """
    Sparse mapping -> FilterCriteria.
    Raises ValueError for values that cannot be coerced (e.g. price_min="abc").
    """
    if isinstance(raw, FilterCriteria):
        return raw
    values = {}
    for key, value in drop_inactive(raw).items():
        kind = FILTER_FIELDS[key]
        if kind == "number":
            values[key] = _to_number(value, key)
        elif kind == "int":
            values[key] = _to_int(value, key)
        elif kind == "list":
            values[key] = _to_set(value)
        else:
            values[key] = str(value)
    return FilterCriteria(**values)


def _contains(haystack, needle):
    return needle in (haystack or "").lower()


def build_rules(criteria):
    """One (field, predicate) pair per active field."""
    rules = []
    if criteria.price_min is not None:
        rules.append(("price_min", lambda p: (p.price or 0) >= criteria.price_min))
    if criteria.price_max is not None:
        rules.append(("price_max", lambda p: (p.price or 0) <= criteria.price_max))
    if criteria.property_types:
        types = set(criteria.property_types)
        rules.append(("property_types", lambda p: p.property_type in types))
    if criteria.bedrooms_min is not None:
        rules.append(("bedrooms_min", lambda p: (p.bedrooms or 0) >= criteria.bedrooms_min))
    if criteria.bathrooms_min is not None:
        rules.append(("bathrooms_min", lambda p: (p.bathrooms or 0) >= criteria.bathrooms_min))
    if criteria.square_feet_min is not None:
        rules.append(("square_feet_min", lambda p: (p.square_feet or 0) >= criteria.square_feet_min))
    if criteria.amenities:
        wanted = set(criteria.amenities)
        # any requested amenity is enough
        rules.append(("amenities", lambda p: bool(wanted.intersection(p.amenities))))
    if criteria.query:
        needle = criteria.query.lower()
        rules.append((
            "query",
            lambda p: _contains(p.title, needle) or _contains(p.address, needle) or _contains(p.description, needle),
        ))
    return rules


def matches(prop, criteria):
    return all(rule(prop) for _, rule in build_rules(criteria))


def apply_filters(properties, criteria):
    rules = build_rules(criteria)
    return [p for p in properties if all(rule(p) for _, rule in rules)]


@dataclass(frozen=True)
class Condition:
    field_name: str
    operator: str
    values: tuple

    def as_payload(self):
        return {
            "FieldName": self.field_name,
            "Operator": self.operator,
            "Values": list(self.values),
            "Include": True,
        }


def to_conditions(criteria):
    """
    Where-conditions for the rules the record backend can evaluate itself.
    Amenities and free-text query have OR semantics the backend cannot
    express; callers re-apply `apply_filters` to the rows it returns.
    """
    conditions = []
    for key, (column, operator) in CONDITION_COLUMNS.items():
        value = getattr(criteria, key)
        if value is None or value == ():
            continue
        values = tuple(value) if isinstance(value, tuple) else (value,)
        conditions.append(Condition(column, operator, values))
    return conditions
