from rest_framework import serializers

from listings.filters import active_filter_count, normalize_filters
from listings.serializers import FilterCriteriaSerializer


class SavePropertySerializer(serializers.Serializer):
    property_id = serializers.IntegerField(min_value=1)


class SavedSearchSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    name = serializers.CharField(max_length=100)
    filters = FilterCriteriaSerializer(required=False)
    result_count = serializers.IntegerField(required=False, min_value=0)
    active_filters = serializers.SerializerMethodField()
    created_at = serializers.DateTimeField(read_only=True)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Search name is required.")
        return value

    def validate_filters(self, value):
        return normalize_filters(value)

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data["filters"] = instance.filters.as_dict()
        return data

    def get_active_filters(self, obj):
        return active_filter_count(obj.filters)
