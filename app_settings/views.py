"""
Settings API views
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.permissions import HasModulePermission
from app_settings.models import Setting
from app_settings.services import SettingsService
from common.decorators import service_errors
from core.exceptions import BaseApplicationException

logger = logging.getLogger(__name__)


class SettingsPermission(HasModulePermission):
    """settings.config.view for reads, settings.config.edit for writes"""

    def get_required_permission(self, request, view):
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return 'settings.config.view'
        return 'settings.config.edit'


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, SettingsPermission])
@service_errors
def settings_index(request):
    """
    GET: settings grouped by group.
    PUT: bulk update from a {key: value} body.

    Example: PUT /api/settings/ {"app_name": "AdminHub", "retention_days": 30}
    """
    service = SettingsService()

    if request.method == 'GET':
        return Response({'settings': service.all()})

    if not isinstance(request.data, dict) or not request.data:
        return Response(
            {'detail': 'Provide at least one setting to update.', 'error_code': 'NO_SETTINGS'},
            status=status.HTTP_422_UNPROCESSABLE_ENTITY
        )

    system_keys = set(
        Setting.objects.filter(key__in=list(request.data), is_system=True).values_list('key', flat=True)
    )
    errors = {}
    updated = []

    for key, value in request.data.items():
        if key in system_keys:
            errors[key] = 'System settings cannot be changed.'
            continue
        try:
            service.set(key, value)
            updated.append(key)
        except BaseApplicationException as e:
            errors[key] = e.message
            logger.warning(f"Settings: failed to update setting '{key}': {e.message}")

    if errors:
        return Response(
            {
                'detail': f"Settings updated with {len(updated)} success(es), but some could not be updated.",
                'error_code': 'SETTINGS_UPDATE_FAILED',
                'details': errors,
                'updated': updated,
            },
            status=status.HTTP_422_UNPROCESSABLE_ENTITY
        )

    return Response({'message': 'Settings updated successfully.', 'updated': updated, 'settings': service.all()})
