"""
Navigation and category API views
"""

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.menus import menu_registry
from common.models import Category
from common.serializers import CategorySerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def menu_list(request):
    """
    Get the navigation tree visible to the current user.

    Example: GET /api/menus/
    """
    return Response({'menus': menu_registry.get_menus(request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def category_list(request):
    """
    List categories, optionally filtered by type.

    Example: GET /api/categories/?type=vault
    """
    queryset = Category.objects.select_related('parent').all()
    category_type = request.query_params.get('type')
    if category_type:
        queryset = queryset.filter(type=category_type.lower())

    serializer = CategorySerializer(queryset, many=True)
    return Response({'categories': serializer.data, 'count': len(serializer.data)})
