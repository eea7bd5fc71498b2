from django.contrib import admin
from .models import Vault, VaultLock


@admin.register(Vault)
class VaultAdmin(admin.ModelAdmin):
    """Secrets are never shown in the admin"""
    list_display = ['name', 'user', 'type', 'category', 'is_favorite', 'created_at']
    list_filter = ['type', 'is_favorite', ('user', admin.RelatedOnlyFieldListFilter)]
    search_fields = ['name', 'username', 'email', 'issuer', 'url']
    exclude = ['value', 'totp_secret', 'fields']
    readonly_fields = ['id', 'created_at', 'updated_at']
    ordering = ['-created_at']


@admin.register(VaultLock)
class VaultLockAdmin(admin.ModelAdmin):
    list_display = ['user', 'created_at', 'updated_at']
    exclude = ['pin_hash']
    readonly_fields = ['user', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        return False
