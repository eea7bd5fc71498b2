"""
Authentication backend with Super Admin bypass.
"""

from django.contrib.auth.backends import ModelBackend


class RoleBackend(ModelBackend):
    """
    ModelBackend where active members of the Super Admin role pass every
    permission check, mirroring Django's is_superuser behaviour for role based
    administration.
    """

    def _is_super_admin(self, user_obj):
        return bool(
            user_obj.is_active
            and not user_obj.is_anonymous
            and getattr(user_obj, 'is_super_admin', False)
        )

    def has_perm(self, user_obj, perm, obj=None):
        if self._is_super_admin(user_obj):
            return True
        return super().has_perm(user_obj, perm, obj=obj)

    def has_module_perms(self, user_obj, app_label):
        if self._is_super_admin(user_obj):
            return True
        return super().has_module_perms(user_obj, app_label)
