from decimal import Decimal, ROUND_HALF_UP

from django.utils import dateformat

from datastore.mapping import to_date
from datastore.records import PropertyType

PROPERTY_TYPE_LABELS = dict(PropertyType.choices)


def format_price(price):
    """450000 -> "$450,000" (whole dollars)."""
    amount = Decimal(str(price or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,}"


def format_square_feet(sqft):
    value = sqft or 0
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    return f"{int(value):,}"


def format_date(value):
    """ "2024-03-05" -> "Mar 5, 2024"; empty string when there is no usable date."""
    day = to_date(value)
    if day is None:
        return ""
    return dateformat.format(day, "M j, Y")


def truncate_text(text, max_length=150):
    text = text or ""
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def property_type_label(value):
    return PROPERTY_TYPE_LABELS.get(value, value)
