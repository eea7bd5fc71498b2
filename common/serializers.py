"""
Common serializers
"""

from rest_framework import serializers
from common.models import Category


class CategorySerializer(serializers.ModelSerializer):
    """Read-only category representation"""

    parent_slug = serializers.CharField(source='parent.slug', read_only=True, allow_null=True)

    class Meta:
        model = Category
        fields = ['id', 'type', 'name', 'slug', 'color', 'description', 'module', 'parent', 'parent_slug']
        read_only_fields = fields
