"""
Registry permission checks for API views.
"""
from rest_framework import permissions


class HasModulePermission(permissions.BasePermission):
    """
    Require the registry permission a view declares.

    Views set `required_permission` (applies to every action) and/or
    `required_permissions` ({action: permission}). Function views use
    `require_permission(name)` instead. Super Admins pass through the
    RoleBackend.
    """

    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False

        permission = self.get_required_permission(request, view)
        if permission is None:
            return True
        return request.user.has_perm(permission)

    def get_required_permission(self, request, view):
        mapping = getattr(view, 'required_permissions', None) or {}
        action = getattr(view, 'action', None) or request.method.lower()
        if action in mapping:
            return mapping[action]
        return getattr(view, 'required_permission', None)


def require_permission(permission_name):
    """Permission class requiring one fixed registry permission"""

    class RequiredPermission(HasModulePermission):
        def get_required_permission(self, request, view):
            return permission_name

    RequiredPermission.__name__ = f"Require[{permission_name}]"
    return RequiredPermission
