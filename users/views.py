"""
User, role and permission API views
"""

from django.contrib.auth.signals import user_logged_in
from rest_framework import status, viewsets
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.views import TokenObtainPairView

from api.permissions import HasModulePermission, require_permission
from common.decorators import service_errors
from core.datatable import serialize_page
from users.serializers import RoleSerializer, RoleWriteSerializer, UserSerializer, UserWriteSerializer
from users.services import PermissionService, RoleService, UserService


class LoginView(TokenObtainPairView):
    """
    JWT login that fires user_logged_in, so logins are audited and notified
    like session logins. Failed attempts fire user_login_failed from authenticate().
    """

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)

        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            raise InvalidToken(e.args[0])

        user = serializer.user
        user_logged_in.send(sender=user.__class__, request=request, user=user)
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


class UserViewSet(viewsets.ViewSet):
    """
    User management.

    list: datatable over username, email and name
    create/update: roles are synced through UserService.sync_roles
    destroy: self-deletion and removing the last Super Admin are refused
    """

    permission_classes = [IsAuthenticated, HasModulePermission]
    required_permissions = {
        'list': 'core.users.view',
        'retrieve': 'core.users.view',
        'create': 'core.users.create',
        'update': 'core.users.edit',
        'partial_update': 'core.users.edit',
        'destroy': 'core.users.delete',
    }

    @property
    def service(self):
        return UserService()

    @service_errors
    def list(self, request):
        page = self.service.list(request.query_params)
        return Response({
            'users': serialize_page(page, UserSerializer),
            'filters': {name: request.query_params.get(name) for name in ['search', 'sort', 'direction']},
        })

    @service_errors
    def retrieve(self, request, pk=None):
        return Response(UserSerializer(self.service.get(pk)).data)

    @service_errors
    def create(self, request):
        serializer = UserWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = self.service.create(serializer.validated_data, actor=request.user)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    @service_errors
    def update(self, request, pk=None):
        service = self.service
        user = service.get(pk)

        serializer = UserWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        user = service.update(user, serializer.validated_data, actor=request.user)
        return Response(UserSerializer(user).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    @service_errors
    def destroy(self, request, pk=None):
        service = self.service
        service.delete(service.get(pk), actor=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class RoleViewSet(viewsets.ViewSet):
    """Role management. The Super Admin role is protected."""

    permission_classes = [IsAuthenticated, HasModulePermission]
    required_permissions = {
        'list': 'core.roles.view',
        'retrieve': 'core.roles.view',
        'create': 'core.roles.create',
        'update': 'core.roles.edit',
        'partial_update': 'core.roles.edit',
        'destroy': 'core.roles.delete',
    }

    @property
    def service(self):
        return RoleService()

    @service_errors
    def list(self, request):
        page = self.service.list(request.query_params)
        return Response({
            'roles': serialize_page(page, RoleSerializer),
            'permissions': PermissionService().group_by_module(),
        })

    @service_errors
    def retrieve(self, request, pk=None):
        return Response(RoleSerializer(self.service.get(pk)).data)

    @service_errors
    def create(self, request):
        serializer = RoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = self.service.create(
            serializer.validated_data.get('name'),
            serializer.validated_data.get('permissions', []),
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)

    @service_errors
    def update(self, request, pk=None):
        service = self.service
        role = service.get(pk)

        serializer = RoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = service.update(
            role,
            name=serializer.validated_data.get('name'),
            permissions=serializer.validated_data.get('permissions'),
        )
        return Response(RoleSerializer(role).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    @service_errors
    def destroy(self, request, pk=None):
        service = self.service
        service.delete(service.get(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('core.roles.view')])
def permission_list(request):
    """
    Registered permissions grouped by module.

    Example: GET /api/permissions/
    """
    return Response({'permissions': PermissionService().group_by_module()})
