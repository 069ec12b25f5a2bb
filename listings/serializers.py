from rest_framework import serializers

from datastore.records import PropertyType
from .filters import FILTER_FIELDS, FIELD_ALIASES, drop_inactive, is_active, normalize_filters
from .formatters import (
    format_price, format_square_feet, format_date, truncate_text, property_type_label,
)
from .sorting import SORT_CHOICES, DEFAULT_SORT

LIST_FILTERS = [key for key, kind in FILTER_FIELDS.items() if kind == "list"]


def filter_data_from_query(query_params):
    """
    QueryDict -> plain dict of raw filter values.
    List filters accept repeated params (?amenities=Gym&amenities=Pool)
    and comma separated values (?amenities=Gym,Pool).
    """
    data = {}
    for key in query_params.keys():
        field = FIELD_ALIASES.get(key, key)
        if field in LIST_FILTERS:
            values = []
            for raw in query_params.getlist(key):
                values.extend(part.strip() for part in raw.split(","))
            data[field] = [v for v in values if v]
        elif field in FILTER_FIELDS:
            data[field] = query_params.get(key)
    return data


class FilterCriteriaSerializer(serializers.Serializer):
    """Validates the active filter fields before normalization."""

    price_min = serializers.FloatField(required=False, min_value=0)
    price_max = serializers.FloatField(required=False, min_value=0)
    property_types = serializers.ListField(
        child=serializers.ChoiceField(choices=PropertyType.choices),
        required=False,
    )
    bedrooms_min = serializers.IntegerField(required=False, min_value=0)
    bathrooms_min = serializers.IntegerField(required=False, min_value=0)
    square_feet_min = serializers.IntegerField(required=False, min_value=0)
    amenities = serializers.ListField(child=serializers.CharField(), required=False)
    query = serializers.CharField(required=False, max_length=200)

    def to_internal_value(self, data):
        if isinstance(data, dict):
            data = drop_inactive(data)
        return super().to_internal_value(data)

    def validate(self, attrs):
        low, high = attrs.get("price_min"), attrs.get("price_max")
        if low is not None and high is not None and low > high:
            raise serializers.ValidationError({"price_max": "Must be greater than or equal to price_min."})
        try:
            normalize_filters(attrs)
        except ValueError as e:
            raise serializers.ValidationError(str(e))
        return attrs


class SortSerializer(serializers.Serializer):
    sort = serializers.ChoiceField(choices=SORT_CHOICES, default=DEFAULT_SORT)

    def to_internal_value(self, data):
        if hasattr(data, "get") and not is_active(data.get("sort")):
            data = {}
        return super().to_internal_value(data)


class PropertySerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    title = serializers.CharField(read_only=True)
    price = serializers.ReadOnlyField()
    price_display = serializers.SerializerMethodField()
    address = serializers.CharField(read_only=True)
    coordinates = serializers.SerializerMethodField()
    bedrooms = serializers.IntegerField(read_only=True)
    bathrooms = serializers.IntegerField(read_only=True)
    square_feet = serializers.IntegerField(read_only=True)
    square_feet_display = serializers.SerializerMethodField()
    property_type = serializers.CharField(read_only=True)
    property_type_label = serializers.SerializerMethodField()
    featured = serializers.BooleanField(read_only=True)
    images = serializers.ListField(child=serializers.CharField(), read_only=True)
    description = serializers.CharField(read_only=True)
    summary = serializers.SerializerMethodField()
    amenities = serializers.ListField(child=serializers.CharField(), read_only=True)
    year_built = serializers.IntegerField(read_only=True)
    listing_date = serializers.DateField(read_only=True)
    listing_date_display = serializers.SerializerMethodField()
    is_saved = serializers.SerializerMethodField()

    def get_price_display(self, obj):
        return format_price(obj.price)

    def get_coordinates(self, obj):
        return {"lat": obj.lat, "lng": obj.lng}

    def get_square_feet_display(self, obj):
        return format_square_feet(obj.square_feet)

    def get_property_type_label(self, obj):
        return property_type_label(obj.property_type)

    def get_summary(self, obj):
        return truncate_text(obj.description)

    def get_listing_date_display(self, obj):
        return format_date(obj.listing_date)

    def get_is_saved(self, obj):
        return obj.id in self.context.get("saved_ids", ())


class PropertyMarkerSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    title = serializers.CharField(read_only=True)
    price_display = serializers.SerializerMethodField()
    lat = serializers.FloatField(read_only=True)
    lng = serializers.FloatField(read_only=True)
    is_saved = serializers.SerializerMethodField()

    def get_price_display(self, obj):
        return format_price(obj.price)

    def get_is_saved(self, obj):
        return obj.id in self.context.get("saved_ids", ())
