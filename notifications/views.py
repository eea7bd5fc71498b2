"""
Signal notification API views

Every endpoint is scoped to the requesting user: another user's
notification answers 404.
"""

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.permissions import HasModulePermission
from core.datatable import DatatableQueryService, serialize_page
from notifications.models import Notification
from notifications.serializers import BulkNotificationSerializer, NotificationSerializer
from notifications.services import SignalCacheService

PER_PAGE = 10


class NotificationViewSet(viewsets.GenericViewSet):
    """
    Notification inbox.

    Features:
    - Paginated inbox with `filter=unread` and {all, unread} counts
    - Detail marks the notification read and returns inbox navigation
    - Cached unread count and recent list for the notification bell
    - Single and bulk read / delete
    """

    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated, HasModulePermission]
    required_permission = 'signal.signal.view'
    required_permissions = {
        'read': 'signal.signal.manage',
        'read_all': 'signal.signal.manage',
        'bulk_read': 'signal.signal.manage',
        'destroy': 'signal.signal.manage',
        'bulk_destroy': 'signal.signal.manage',
    }

    def get_queryset(self):
        return Notification.objects.for_user(self.request.user).order_by('-created_at')

    @property
    def cache_service(self):
        return SignalCacheService()

    def list(self, request):
        queryset = self.get_queryset()
        notification_filter = request.query_params.get('filter') or 'all'
        if notification_filter == 'unread':
            queryset = queryset.unread()

        page = DatatableQueryService().apply_pagination(
            queryset, request.query_params, allowed_per_page=(PER_PAGE,), default_per_page=PER_PAGE
        )
        user_notifications = Notification.objects.for_user(request.user)

        return Response({
            'notifications': serialize_page(page, NotificationSerializer),
            'filter': notification_filter,
            'counts': {
                'all': user_notifications.count(),
                'unread': user_notifications.unread().count(),
            },
        })

    def retrieve(self, request, pk=None):
        notification = self.get_object()
        if notification.read_at is None:
            notification.mark_as_read()
            self.cache_service.invalidate_user_cache(request.user)

        ids = list(self.get_queryset().values_list('id', flat=True))
        index = ids.index(notification.id)

        return Response({
            'notification': NotificationSerializer(notification).data,
            'navigation': {
                'prev': str(ids[index - 1]) if index > 0 else None,
                'next': str(ids[index + 1]) if index < len(ids) - 1 else None,
                'current': index + 1,
                'total': len(ids),
            },
        })

    def destroy(self, request, pk=None):
        notification = self.get_object()
        notification.delete()
        self.cache_service.invalidate_user_cache(request.user)
        return Response({'success': True})

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return Response({'count': self.cache_service.get_unread_count(request.user)})

    @action(detail=False, methods=['get'])
    def recent(self, request):
        return Response({'notifications': self.cache_service.get_recent_notifications(request.user)})

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_as_read()
        self.cache_service.invalidate_user_cache(request.user)
        return Response({'success': True})

    @action(detail=False, methods=['post'], url_path='read-all')
    def read_all(self, request):
        updated = self.get_queryset().mark_as_read()
        self.cache_service.invalidate_user_cache(request.user)
        return Response({'success': True, 'updated': updated})

    @action(detail=False, methods=['post'], url_path='bulk-read')
    def bulk_read(self, request):
        serializer = BulkNotificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        updated = self.get_queryset().filter(
            id__in=serializer.validated_data['ids'], read_at__isnull=True
        ).update(read_at=timezone.now())
        self.cache_service.invalidate_user_cache(request.user)

        return Response({'success': True, 'updated': updated})

    @action(detail=False, methods=['delete', 'post'], url_path='bulk-destroy')
    def bulk_destroy(self, request):
        serializer = BulkNotificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deleted, _ = self.get_queryset().filter(id__in=serializer.validated_data['ids']).delete()
        self.cache_service.invalidate_user_cache(request.user)

        return Response({'success': True, 'deleted': deleted}, status=status.HTTP_200_OK)
