from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    User management in the admin.

    Roles are the groups a user belongs to. Prefer the Roles API for
    permission changes so menus and audit entries stay in sync.
    """
    list_display = ['username', 'email', 'name', 'roles', 'is_active', 'date_joined']
    list_filter = ['groups', 'is_active', 'is_staff']
    search_fields = ['username', 'email', 'name']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Profile', {'fields': ('name',)}),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Profile', {'fields': ('email', 'name')}),
    )

    @admin.display(description='Roles')
    def roles(self, obj):
        return ', '.join(obj.role_names) or '-'
