"""
Audit Log Serializers
"""

from rest_framework import serializers

from audit.formatters import format_changes
from audit.models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    """
    Serializer for AuditLog model.

    Read-only: Audit logs cannot be created/updated via API.
    """

    user_display = serializers.CharField(read_only=True)
    event_display = serializers.CharField(read_only=True)
    event_icon = serializers.CharField(read_only=True)
    event_color = serializers.CharField(read_only=True)
    model_name = serializers.CharField(read_only=True)

    user_username = serializers.CharField(source='user.username', read_only=True, allow_null=True)

    class Meta:
        model = AuditLog
        fields = [
            'id',
            'user',
            'user_username',
            'user_display',
            'event',
            'event_display',
            'event_icon',
            'event_color',
            'auditable_type',
            'auditable_id',
            'model_name',
            'old_values',
            'new_values',
            'url',
            'ip_address',
            'user_agent',
            'tags',
            'created_at',
        ]
        read_only_fields = fields  # All fields are read-only


class AuditLogDetailSerializer(AuditLogSerializer):
    """Adds formatted changes and the audited record"""

    changes = serializers.SerializerMethodField()
    auditable = serializers.SerializerMethodField()

    class Meta(AuditLogSerializer.Meta):
        fields = AuditLogSerializer.Meta.fields + ['changes', 'auditable']
        read_only_fields = fields

    def get_changes(self, obj):
        return format_changes(obj)

    def get_auditable(self, obj):
        record = obj.auditable
        if record is None:
            return None
        return {
            'id': str(record.pk),
            'type': obj.auditable_type,
            'label': str(record),
        }


class AuditLogSummarySerializer(serializers.ModelSerializer):
    """
    Lightweight serializer for audit log summaries.
    """

    user_display = serializers.CharField(read_only=True)
    event_display = serializers.CharField(read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            'id',
            'user_display',
            'event',
            'event_display',
            'auditable_type',
            'auditable_id',
            'created_at'
        ]
        read_only_fields = fields
