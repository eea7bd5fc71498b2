"""
Dashboard API

Widgets come from the dashboard widget registry:
- overview: at most three stat widgets per module plus charts and activity
- module dashboards: the module's detail widgets
"""

from django.http import Http404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.permissions import require_permission
from dashboard.widgets import widget_registry


def get_visible_modules(user):
    """Modules with widgets whose dashboard the user may open"""
    return [
        {'name': module, 'route': f'dashboard.{module}'}
        for module in widget_registry.get_modules()
        if user.has_perm(f'{module}.dashboard.view')
    ]


@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permission('core.dashboard.view')])
def overview(request):
    """
    Overview dashboard widgets.

    Example: GET /api/dashboard/
    """
    return Response({
        'widgets': widget_registry.get_overview_widgets(request.user),
        'modules': get_visible_modules(request.user),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def module_dashboard(request, module):
    """
    Widgets of one module.

    Example: GET /api/dashboard/vaults/

    Requires `{module}.dashboard.view`, unknown modules answer 404.
    """
    module = module.lower()
    if not widget_registry.has_module(module):
        raise Http404(f"No dashboard for module '{module}'")

    if not request.user.has_perm(f'{module}.dashboard.view'):
        raise PermissionDenied("You do not have permission to view this dashboard.")

    return Response({
        'module': module,
        'widgets': widget_registry.get_widgets_for_module(module, request.user),
    })
