"""
Vault lock enforcement.
"""
import logging

from rest_framework import permissions, status
from rest_framework.exceptions import APIException

from vaults.services import VaultLockService

logger = logging.getLogger(__name__)


class VaultLocked(APIException):
    status_code = status.HTTP_423_LOCKED
    default_detail = 'The vault is locked. Unlock it with your PIN.'
    default_code = 'VAULT_LOCKED'

    def __init__(self):
        super().__init__({'detail': self.default_detail, 'error_code': self.default_code})


class VaultUnlocked(permissions.BasePermission):
    """
    Refuse vault access with 423 while the requester's vault is locked.

    Passes when the user is anonymous, the lock is disabled, the user has
    no PIN or the lock cannot be read. GET requests remember their URL so
    that unlocking can send the user back.
    """

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return True

        service = VaultLockService()
        if not service.is_enabled():
            return True

        try:
            lock = service.get_lock(user)
        except Exception as e:
            logger.warning(f"VaultUnlocked: lock lookup failed | Context: {{'user_id': {user.pk}}}: {e}")
            return True
        if lock is None:
            return True

        if service.is_locked(user, request.session):
            if request.method == 'GET':
                service.remember_intended_url(request.session, request.get_full_path())
            raise VaultLocked()
        return True
