from asgiref.sync import async_to_sync
from django.utils import timezone
from rest_framework import serializers

from datastore.records import TaskStatus

STATUS_CHOICES = [(value, value) for value in TaskStatus.values]


class TaskSerializer(serializers.Serializer):
    """
    Task linked (optionally) to a property.
    create/update go through the data store passed in context["store"].
    """
    id = serializers.IntegerField(read_only=True)
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(choices=STATUS_CHOICES, default=TaskStatus.NOT_STARTED)
    due_date = serializers.DateField(required=False, allow_null=True)
    assigned_to = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    property_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    created_on = serializers.DateTimeField(read_only=True)
    modified_on = serializers.DateTimeField(read_only=True)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Task name is required")
        return value

    def validate_due_date(self, value):
        if value and value < timezone.localdate():
            raise serializers.ValidationError("Due date cannot be in the past")
        return value

    def create(self, validated_data):
        store = self.context["store"]
        return async_to_sync(store.create_task)(validated_data)

    def update(self, instance, validated_data):
        store = self.context["store"]
        return async_to_sync(store.update_task)(instance.id, validated_data)
