"""
Row -> record mapping for the record-table backend.

Every row coming out of a store (the hosted tables or the bundled fixture,
which uses the same column layout) goes through one of the functions below.
Missing columns fall back to defaults; JSON columns that cannot be decoded
are logged and replaced with their default instead of failing the request.
"""
import json
import logging
from datetime import date, datetime

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from listings.filters import normalize_filters
from .errors import ParseFailure
from .records import Property, SavedSearch, Task, TaskStatus, FilterCriteria

logger = logging.getLogger(__name__)

PROPERTY_TABLE = "property_c"
SAVED_TABLE = "saved_search_c"
TASK_TABLE = "task_c"

PROPERTY_FIELDS = [
    "Id", "title_c", "price_c", "address_c", "coordinates_c",
    "bedrooms_c", "bathrooms_c", "square_feet_c", "property_type_c",
    "featured_c", "images_c", "description_c", "amenities_c",
    "year_built_c", "listing_date_c",
]
SAVED_SEARCH_FIELDS = ["Id", "name_c", "filters_c", "result_count_c", "created_date_c"]
TASK_FIELDS = [
    "Id", "name_c", "description_c", "status_c", "due_date_c",
    "assigned_to_c", "property_c", "CreatedOn", "ModifiedOn",
]


def decode_json_column(value, column):
    """Decode a JSON-encoded column. Already-decoded values pass through."""
    if not isinstance(value, (str, bytes)):
        return value
    try:
        return json.loads(value)
    except ValueError as e:
        raise ParseFailure(f"column {column} holds malformed JSON: {e}") from e


def _json_column(row, column, default):
    value = row.get(column)
    if value in (None, ""):
        return default
    try:
        return decode_json_column(value, column)
    except ParseFailure as e:
        logger.warning("Using default for record Id=%s: %s", row.get("Id"), e)
        return default


def _coordinates(row):
    raw = _json_column(row, "coordinates_c", None)
    try:
        if isinstance(raw, dict):
            return float(raw.get("lat") or 0), float(raw.get("lng") or 0)
        if isinstance(raw, (list, tuple)) and len(raw) == 2:
            return float(raw[0]), float(raw[1])
    except (TypeError, ValueError):
        pass
    if raw is not None:
        logger.warning("Using default coordinates for record Id=%s: %r", row.get("Id"), raw)
    return 0.0, 0.0


def _string_list(row, column):
    raw = _json_column(row, column, [])
    if not isinstance(raw, list):
        logger.warning("Expected a list in %s for record Id=%s, got %r", column, row.get("Id"), raw)
        return ()
    return tuple(str(item) for item in raw if item not in (None, ""))


def to_date(value):
    """date / datetime / ISO string -> date, anything else -> None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = parse_date(value)
        if parsed is None:
            dt = parse_datetime(value)
            parsed = dt.date() if dt else None
    except ValueError:
        parsed = None
    return parsed


def to_datetime(value):
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


def _lookup_id(value):
    """Lookup columns come back either as a bare id or as {"Id": .., "Name": ..}."""
    if isinstance(value, dict):
        value = value.get("Id")
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def property_from_record(row):
    return Property(
        id=int(row["Id"]),
        title=row.get("title_c") or "",
        price=row.get("price_c") or 0,
        address=row.get("address_c") or "",
        coordinates=_coordinates(row),
        bedrooms=row.get("bedrooms_c") or 0,
        bathrooms=row.get("bathrooms_c") or 0,
        square_feet=row.get("square_feet_c") or 0,
        property_type=row.get("property_type_c") or "",
        featured=bool(row.get("featured_c") or False),
        images=_string_list(row, "images_c"),
        description=row.get("description_c") or "",
        amenities=_string_list(row, "amenities_c"),
        year_built=row.get("year_built_c") or 0,
        listing_date=to_date(row.get("listing_date_c")),
    )


def saved_search_from_record(row):
    raw_filters = _json_column(row, "filters_c", {})
    try:
        filters = normalize_filters(raw_filters if isinstance(raw_filters, dict) else {})
    except ValueError as e:
        logger.warning("Discarding unusable filters of saved search Id=%s: %s", row.get("Id"), e)
        filters = FilterCriteria()
    return SavedSearch(
        id=int(row["Id"]),
        name=row.get("name_c") or "",
        filters=filters,
        result_count=row.get("result_count_c") or 0,
        created_at=to_datetime(row.get("created_date_c")) or timezone.now(),
    )


def saved_search_to_record(name, filters, result_count):
    return {
        "type_c": "search",
        "name_c": name,
        "filters_c": json.dumps(filters.as_dict()),
        "result_count_c": result_count or 0,
        "created_date_c": timezone.now().isoformat(),
    }


def task_from_record(row):
    return Task(
        id=int(row["Id"]),
        name=row.get("name_c") or "",
        description=row.get("description_c") or "",
        status=row.get("status_c") or TaskStatus.NOT_STARTED,
        due_date=to_date(row.get("due_date_c")),
        assigned_to=_lookup_id(row.get("assigned_to_c")),
        property_id=_lookup_id(row.get("property_c")),
        created_on=to_datetime(row.get("CreatedOn")),
        modified_on=to_datetime(row.get("ModifiedOn")),
    )


TASK_COLUMNS = {
    "name": "name_c",
    "description": "description_c",
    "status": "status_c",
    "due_date": "due_date_c",
    "assigned_to": "assigned_to_c",
    "property_id": "property_c",
}


def task_to_record(fields):
    """Only the updateable columns that were actually passed in."""
    record = {}
    for key, column in TASK_COLUMNS.items():
        if key not in fields:
            continue
        value = fields[key]
        if key == "due_date":
            value = value.isoformat() if value else None
        elif key in ("assigned_to", "property_id"):
            value = _lookup_id(value)
        record[column] = value
    return record
