"""
Vault API views

Every vault endpoint except the lock endpoints passes through the
VaultUnlocked permission.
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.permissions import HasModulePermission, require_permission
from common.decorators import service_errors
from core.datatable import serialize_page
from vaults.models import Vault
from vaults.permissions import VaultUnlocked
from vaults.serializers import (
    PasswordOptionsSerializer,
    PinSerializer,
    VaultDetailSerializer,
    VaultListSerializer,
    VaultWriteSerializer,
)
from vaults.services import VaultLockService, VaultService


class VaultViewSet(viewsets.ViewSet):
    """
    CRUD for the current user's vault items.

    Features:
    - Search, type/category/favorites filters and sorting
    - Favorite toggle
    - Current TOTP code
    """

    permission_classes = [IsAuthenticated, HasModulePermission, VaultUnlocked]
    required_permissions = {
        'list': 'vaults.vault.view',
        'retrieve': 'vaults.vault.view',
        'generate_totp': 'vaults.vault.view',
        'create': 'vaults.vault.create',
        'update': 'vaults.vault.edit',
        'partial_update': 'vaults.vault.edit',
        'toggle_favorite': 'vaults.vault.edit',
        'destroy': 'vaults.vault.delete',
    }
    lookup_value_regex = '[0-9a-fA-F-]+'

    @property
    def service(self):
        return VaultService()

    @service_errors
    def list(self, request):
        page = self.service.list(request.user, request.query_params)
        return Response({
            'vaults': serialize_page(page, VaultListSerializer),
            'categories': self.service.get_categories(),
            'types': Vault.TYPES,
            'filters': {
                name: request.query_params.get(name)
                for name in ['search', 'type', 'category_id', 'favorites', 'sort', 'direction']
            },
        })

    @service_errors
    def retrieve(self, request, pk=None):
        vault = self.service.get(request.user, pk)
        return Response(VaultDetailSerializer(vault).data)

    @service_errors
    def create(self, request):
        serializer = VaultWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        vault = self.service.create(request.user, serializer.validated_data)
        return Response(VaultDetailSerializer(vault).data, status=status.HTTP_201_CREATED)

    @service_errors
    def update(self, request, pk=None, partial=False):
        serializer = VaultWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        vault = self.service.update(request.user, pk, serializer.validated_data)
        return Response(VaultDetailSerializer(vault).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk, partial=True)

    @service_errors
    def destroy(self, request, pk=None):
        self.service.delete(request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='toggle-favorite')
    @service_errors
    def toggle_favorite(self, request, pk=None):
        vault = self.service.toggle_favorite(request.user, pk)
        return Response({'is_favorite': vault.is_favorite})

    @action(detail=True, methods=['post', 'get'], url_path='generate-totp')
    @service_errors
    def generate_totp(self, request, pk=None):
        return Response({'code': self.service.generate_totp(request.user, pk)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_permission('vaults.vault.view'), VaultUnlocked])
@service_errors
def generate_password(request):
    """
    Generate a random password.

    Example: POST /api/vaults/generate-password/ {"length": 24, "symbols": false}
    """
    data = request.data if request.method == 'POST' else request.query_params.dict()
    serializer = PasswordOptionsSerializer(data=dict(data))
    serializer.is_valid(raise_exception=True)

    password = VaultService.generate_password(**serializer.validated_data)
    return Response({'password': password})


# ============================================================================
# LOCK ENDPOINTS
# ============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, require_permission('vaults.vault.view')])
@service_errors
def lock(request):
    """
    GET: whether the lock is enabled and the user has a PIN.
    POST: lock the vault.
    """
    service = VaultLockService()
    if request.method == 'GET':
        return Response({
            'enabled': service.is_enabled(),
            'has_lock': service.get_lock(request.user) is not None,
            **service.status(request.session),
        })

    service.lock(request.session)
    return Response({'message': 'Vault locked.', **service.status(request.session)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('vaults.vault.view')])
def lock_status(request):
    return Response(VaultLockService.status(request.session))


@api_view(['POST'])
@permission_classes([IsAuthenticated, require_permission('vaults.vault.view')])
@service_errors
def set_pin(request):
    serializer = PinSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    VaultLockService().set_pin(
        request.user,
        serializer.validated_data['pin'],
        serializer.validated_data.get('pin_confirmation'),
        request.session,
    )
    return Response({'message': 'Vault PIN set successfully.', **VaultLockService.status(request.session)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, require_permission('vaults.vault.view')])
@service_errors
def unlock(request):
    serializer = PinSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    redirect = VaultLockService().unlock(request.user, serializer.validated_data['pin'], request.session)
    return Response({
        'message': 'Vault unlocked.',
        'redirect': redirect,
        **VaultLockService.status(request.session),
    })
