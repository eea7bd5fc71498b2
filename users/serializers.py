"""
User, role and permission serializers
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework import serializers

from users.services import RoleService

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Read representation of a user"""

    display_name = serializers.CharField(read_only=True)
    roles = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'name', 'display_name', 'is_active', 'roles',
                  'date_joined', 'last_login']
        read_only_fields = fields

    def get_roles(self, obj):
        return sorted(group.name for group in obj.groups.all())


class UserWriteSerializer(serializers.Serializer):
    """Input for creating and updating users. Uniqueness is checked by UserService."""

    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True, trim_whitespace=False)
    is_active = serializers.BooleanField(required=False)
    roles = serializers.ListField(child=serializers.CharField(), required=False)

    def validate(self, attrs):
        if self.instance is None and not self.partial and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'This field is required.'})
        return attrs


class RoleSerializer(serializers.ModelSerializer):
    users_count = serializers.SerializerMethodField()
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = Group
        fields = ['id', 'name', 'users_count', 'permissions']
        read_only_fields = fields

    def get_users_count(self, obj):
        count = getattr(obj, 'users_count', None)
        return count if count is not None else obj.user_set.count()

    def get_permissions(self, obj):
        return RoleService.get_permission_names(obj)


class RoleWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150, required=False)
    permissions = serializers.ListField(child=serializers.CharField(), required=False)
