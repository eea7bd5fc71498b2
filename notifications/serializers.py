"""
Signal notification serializers
"""

from django.utils.timesince import timesince
from rest_framework import serializers

from notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Read-only notification representation"""

    created_at_human = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            'id',
            'type',
            'title',
            'message',
            'action_url',
            'module_source',
            'read_at',
            'created_at',
            'created_at_human',
        ]
        read_only_fields = fields

    def get_created_at_human(self, obj):
        return f"{timesince(obj.created_at)} ago"


class BulkNotificationSerializer(serializers.Serializer):
    """Validates the ids of a bulk action"""

    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1)
