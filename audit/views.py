"""
Audit Log API Views

Read-only access to audit logs for holders of auditlog.auditlog.view.
"""

import csv
import json
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.db.models import Count
from django.http import StreamingHttpResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.permissions import HasModulePermission, require_permission
from app_settings.services import get_setting
from audit.helpers import log_event
from audit.loaders import load_auditables
from audit.models import AuditEvent, AuditLog
from audit.serializers import AuditLogDetailSerializer, AuditLogSerializer, AuditLogSummarySerializer
from core.cache import get_cache_service
from core.datatable import DatatableQueryService, serialize_page

User = get_user_model()

CACHE_TAG = 'auditlog'
TYPES_CACHE_TTL = 3600
DEFAULT_PER_PAGE = 20
FILTER_PARAMS = ['user_id', 'system', 'event', 'auditable_type', 'start_date', 'end_date']
CSV_COLUMNS = [
    'ID',
    'User',
    'Event',
    'Model Type',
    'Model ID',
    'Old Values',
    'New Values',
    'URL',
    'IP Address',
    'User Agent',
    'Created At',
]


def apply_filters(queryset, params):
    """
    Filter by user, system (user vs system actions), event, model type and
    date range. `system` only applies without `user_id`, and a start date
    after the end date drops the end date.
    """
    user_id = params.get('user_id')
    if user_id:
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            user_id = None
        if user_id is not None and User.objects.filter(pk=user_id).exists():
            queryset = queryset.filter(user_id=user_id)
    elif params.get('system') in ('user', 'system'):
        queryset = queryset.filter(user__isnull=params.get('system') == 'system')

    if params.get('event'):
        queryset = queryset.filter(event=params['event'])

    if params.get('auditable_type'):
        queryset = queryset.filter(auditable_type=params['auditable_type'])

    start_date = _parse_date(params.get('start_date'))
    end_date = _parse_date(params.get('end_date'))
    if start_date:
        queryset = queryset.filter(created_at__date__gte=start_date)
    if end_date and not (start_date and start_date > end_date):
        queryset = queryset.filter(created_at__date__lte=end_date)

    return queryset


def _parse_date(value):
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError:
        return None


def get_model_types():
    def load():
        types = (
            AuditLog.objects.exclude(auditable_type__isnull=True)
            .values_list('auditable_type', flat=True)
            .distinct()
            .order_by('auditable_type')
        )
        return [
            {'value': auditable_type, 'label': auditable_type.rsplit('.', 1)[-1].replace('_', ' ').title()}
            for auditable_type in types
        ]

    return get_cache_service().remember('auditlog:model_types', TYPES_CACHE_TTL, load, tags=CACHE_TAG, context='AuditLog')


def get_event_types():
    def load():
        events = AuditLog.objects.values_list('event', flat=True).distinct().order_by('event')
        return [{'value': event, 'label': AuditEvent.label(event)} for event in events]

    return get_cache_service().remember('auditlog:event_types', TYPES_CACHE_TTL, load, tags=CACHE_TAG, context='AuditLog')


def build_stats(queryset):
    """Totals by event, model and user"""
    recent_threshold = timezone.now() - timedelta(hours=24)
    return {
        'total_logs': queryset.count(),
        'logs_today': queryset.filter(created_at__date=timezone.localdate()).count(),
        'recent_24h': queryset.filter(created_at__gte=recent_threshold).count(),
        'by_event': dict(
            queryset.order_by().values_list('event').annotate(count=Count('id')).order_by('-count')
        ),
        'by_model': dict(
            queryset.exclude(auditable_type__isnull=True).order_by()
            .values_list('auditable_type').annotate(count=Count('id')).order_by('-count')
        ),
        'top_users': list(
            queryset.filter(user__isnull=False).order_by()
            .values('user__id', 'user__username')
            .annotate(count=Count('id'))
            .order_by('-count')[:10]
        ),
    }


class _Echo:
    """File-like object whose write() hands the line back to the csv writer's caller"""

    def write(self, value):
        return value


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only ViewSet for audit logs.

    Features:
    - Datatable listing with filters, `stats` deferred behind ?only=stats
    - Detail with formatted changes, the audited record and prev/next ids
    - CSV export, audit trail per record, activity per user
    """

    serializer_class = AuditLogSerializer
    permission_classes = [IsAuthenticated, HasModulePermission]
    required_permission = 'auditlog.auditlog.view'
    required_permissions = {'export': 'auditlog.auditlog.export'}
    search_fields = ['url', 'event', 'auditable_type']
    ordering = ['-created_at']

    def get_queryset(self):
        return apply_filters(AuditLog.objects.select_related('user'), self.request.query_params)

    def list(self, request, *args, **kwargs):
        params = request.query_params
        queryset = self.get_queryset()

        if params.get('only') == 'stats':
            return Response({'stats': build_stats(queryset)})

        page = DatatableQueryService().build(
            queryset,
            params,
            search_fields=self.search_fields,
            allowed_sorts=['created_at', 'event', 'auditable_type'],
            default_sort='created_at',
            default_direction='desc',
            default_per_page=DEFAULT_PER_PAGE,
        )
        load_auditables(page['data'])

        return Response({
            'audit_logs': serialize_page(page, AuditLogSerializer, self.get_serializer_context()),
            'users': list(User.objects.order_by('name', 'username').values('id', 'name', 'username', 'email')),
            'model_types': get_model_types(),
            'event_types': get_event_types(),
            'default_per_page': DEFAULT_PER_PAGE,
            'filters': {name: params.get(name) for name in FILTER_PARAMS},
        })

    def retrieve(self, request, *args, **kwargs):
        audit_log = self.get_object()
        load_auditables([audit_log])

        queryset = self.get_queryset()
        previous_id = queryset.filter(id__lt=audit_log.id).order_by('-id').values_list('id', flat=True).first()
        next_id = queryset.filter(id__gt=audit_log.id).order_by('id').values_list('id', flat=True).first()

        return Response({
            'audit_log': AuditLogDetailSerializer(audit_log, context=self.get_serializer_context()).data,
            'navigation': {'previous_id': previous_id, 'next_id': next_id},
        })

    @action(detail=False, methods=['get'])
    def export(self, request):
        """
        Stream the filtered logs as CSV.

        Example: GET /api/audit/logs/export/?event=login
        """
        queryset = self.get_queryset().order_by('-created_at')
        chunk_size = max(1, int(get_setting('export_chunk_size', 500) or 500))
        filename = f"audit-logs-{timezone.now().strftime('%Y-%m-%d-%H%M%S')}.csv"

        log_event(
            AuditEvent.EXPORT,
            user=request.user,
            request=request,
            auditable_type=AuditLog._meta.label_lower,
            new_values={
                'format': 'CSV',
                'record_count': queryset.count(),
                'exported_at': timezone.now().isoformat(),
            },
            tags=['export'],
        )

        writer = csv.writer(_Echo())

        def rows():
            yield writer.writerow(CSV_COLUMNS)
            for log in queryset.iterator(chunk_size=chunk_size):
                yield writer.writerow([
                    log.id,
                    log.user_display,
                    log.event,
                    log.model_name,
                    log.auditable_id or '',
                    json.dumps(log.old_values),
                    json.dumps(log.new_values),
                    log.url or '',
                    log.ip_address or '',
                    log.user_agent or '',
                    timezone.localtime(log.created_at).strftime('%Y-%m-%d %H:%M:%S'),
                ])

        response = StreamingHttpResponse(rows(), content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(build_stats(self.get_queryset()))

    @action(detail=False, methods=['get'])
    def model_types(self, request):
        return Response(get_model_types())

    @action(detail=False, methods=['get'])
    def event_types(self, request):
        return Response(get_event_types())

    @action(detail=False, methods=['get'])
    def resource_trail(self, request):
        """
        Get audit trail for a specific record.

        Example: GET /api/audit/logs/resource_trail/?auditable_type=users.user&auditable_id=5
        """
        auditable_type = request.query_params.get('auditable_type')
        auditable_id = request.query_params.get('auditable_id')

        if not auditable_type or not auditable_id:
            return Response(
                {'detail': 'Both auditable_type and auditable_id are required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        queryset = self.get_queryset().for_model(auditable_type, auditable_id)
        serializer = self.get_serializer(queryset, many=True)

        return Response({
            'auditable_type': auditable_type,
            'auditable_id': auditable_id,
            'audit_trail': serializer.data,
            'count': len(serializer.data)
        })

    @action(detail=False, methods=['get'])
    def user_activity(self, request):
        """
        Paged activity logs for a user, the current user by default.

        Example: GET /api/audit/logs/user_activity/?user_id=5&page=2
        """
        params = request.query_params
        try:
            user_id = int(params.get('user_id') or request.user.id)
        except (TypeError, ValueError):
            return Response(
                {'detail': 'user_id must be an integer.', 'error_code': 'INVALID_USER_ID'},
                status=status.HTTP_400_BAD_REQUEST
            )

        page = DatatableQueryService().build(
            AuditLog.objects.select_related('user').filter(user_id=user_id),
            params,
            allowed_sorts=['created_at', 'event'],
            default_sort='created_at',
            default_direction='desc',
            default_per_page=DEFAULT_PER_PAGE,
        )

        return Response({
            'user_id': user_id,
            'audit_logs': serialize_page(page, AuditLogSerializer, self.get_serializer_context()),
        })

    @action(detail=False, methods=['get'])
    def recent(self, request):
        """Last 50 entries"""
        logs = list(self.get_queryset()[:50])
        serializer = self.get_serializer(logs, many=True)

        return Response({
            'recent_logs': serializer.data,
            'count': len(logs)
        })


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('auditlog.auditlog.view')])
def audit_summary(request):
    """
    Get quick audit summary for dashboard.

    Returns:
    - Total logs
    - Logs today
    - Recent critical actions
    """
    logs = AuditLog.objects.select_related('user')

    critical_actions = logs.filter(
        event__in=[
            AuditEvent.DELETED,
            AuditEvent.FAILED_LOGIN,
            AuditEvent.RELATIONSHIP_SYNCED,
            AuditEvent.ACCOUNT_DELETED,
        ]
    ).order_by('-created_at')[:10]

    return Response({
        'total_logs': logs.count(),
        'logs_today': logs.filter(created_at__date=timezone.localdate()).count(),
        'recent_critical_actions': AuditLogSummarySerializer(critical_actions, many=True).data
    })
