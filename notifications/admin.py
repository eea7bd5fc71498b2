from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'type', 'module_source', 'read_at', 'created_at']
    list_filter = ['type', 'module_source', ('user', admin.RelatedOnlyFieldListFilter)]
    search_fields = ['title', 'message', 'user__username', 'user__email']
    readonly_fields = ['id', 'user', 'type', 'title', 'message', 'action_url', 'module_source', 'read_at', 'created_at']
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    def has_add_permission(self, request):
        """Notifications are sent through SignalService"""
        return False
