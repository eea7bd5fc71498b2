"""
Audit Log Admin - READ ONLY

Audit logs are immutable and cannot be edited or deleted via admin.
"""

import json

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html
from audit.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """
    Read-only admin for audit logs.

    Features:
    - View logs only (no edit/delete)
    - Filter by event, model type, user, date
    - Old and new values shown as JSON
    """

    list_display = [
        'id',
        'created_at',
        'user_link',
        'event',
        'auditable_type',
        'auditable_id',
        'ip_address'
    ]

    list_filter = [
        'event',
        'auditable_type',
        'created_at',
        ('user', admin.RelatedOnlyFieldListFilter),
    ]

    search_fields = [
        'url',
        'auditable_type',
        'user__username',
        'user__email',
        'ip_address'
    ]

    readonly_fields = [
        'user',
        'event',
        'auditable_type',
        'auditable_id',
        'old_values_display',
        'new_values_display',
        'url',
        'ip_address',
        'user_agent',
        'tags',
        'created_at'
    ]

    fieldsets = (
        ('Event', {
            'fields': ('event', 'auditable_type', 'auditable_id', 'tags')
        }),
        ('Changes', {
            'fields': ('old_values_display', 'new_values_display')
        }),
        ('Request', {
            'fields': ('user', 'url', 'ip_address', 'user_agent', 'created_at'),
            'classes': ('collapse',)
        }),
    )

    date_hierarchy = 'created_at'

    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_actions(self, request):
        actions = super().get_actions(request)
        if 'delete_selected' in actions:
            del actions['delete_selected']
        return actions

    @admin.display(description='User')
    def user_link(self, obj):
        if obj.user:
            url = reverse('admin:users_user_change', args=[obj.user.id])
            return format_html('<a href="{}">{}</a>', url, obj.user.username)
        return "System"

    @staticmethod
    def _json(values):
        if not values:
            return "-"
        return format_html('<pre>{}</pre>', json.dumps(values, indent=2, default=str))

    @admin.display(description='Old values')
    def old_values_display(self, obj):
        return self._json(obj.old_values)

    @admin.display(description='New values')
    def new_values_display(self, obj):
        return self._json(obj.new_values)
