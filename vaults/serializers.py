"""
Vault serializers
"""

from rest_framework import serializers

from common.models import Category
from core.constants import VaultType
from vaults.models import Vault

NULLABLE_FIELDS = ['username', 'email', 'issuer', 'value', 'totp_secret', 'url', 'category_id']


class VaultListSerializer(serializers.ModelSerializer):
    """Vault item without its secrets"""

    category_name = serializers.CharField(source='category.name', read_only=True, allow_null=True)
    category_color = serializers.CharField(source='category.color', read_only=True, allow_null=True)
    favicon_url = serializers.CharField(read_only=True, allow_null=True)
    has_totp = serializers.BooleanField(read_only=True)

    class Meta:
        model = Vault
        fields = [
            'id',
            'type',
            'name',
            'username',
            'email',
            'issuer',
            'url',
            'favicon_url',
            'category',
            'category_name',
            'category_color',
            'is_favorite',
            'has_totp',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class VaultDetailSerializer(VaultListSerializer):
    """Vault item including decrypted secrets, for its owner only"""

    class Meta(VaultListSerializer.Meta):
        fields = VaultListSerializer.Meta.fields + ['value', 'totp_secret', 'fields']
        read_only_fields = fields


class VaultWriteSerializer(serializers.Serializer):
    """Validates vault item input. Empty strings are treated as null."""

    name = serializers.CharField(max_length=255)
    type = serializers.ChoiceField(choices=VaultType.CHOICES)
    username = serializers.CharField(max_length=255, required=False, allow_null=True)
    email = serializers.EmailField(max_length=255, required=False, allow_null=True)
    issuer = serializers.CharField(max_length=255, required=False, allow_null=True)
    value = serializers.CharField(required=False, allow_null=True, trim_whitespace=False)
    totp_secret = serializers.CharField(required=False, allow_null=True)
    fields = serializers.JSONField(required=False, allow_null=True)
    url = serializers.URLField(max_length=2048, required=False, allow_null=True)
    category_id = serializers.PrimaryKeyRelatedField(
        source='category',
        queryset=Category.objects.filter(type='vault'),
        required=False,
        allow_null=True
    )
    is_favorite = serializers.BooleanField(required=False)

    def to_internal_value(self, data):
        if hasattr(data, 'dict'):
            data = data.dict()
        data = dict(data)
        for field in NULLABLE_FIELDS:
            if data.get(field) == '':
                data[field] = None
        fields = data.get('fields')
        if isinstance(fields, dict) and not any(fields.values()):
            data['fields'] = None
        return super().to_internal_value(data)

    def validate_fields(self, value):
        if value is not None and not isinstance(value, dict):
            raise serializers.ValidationError("Fields must be an object.")
        return value


class PasswordOptionsSerializer(serializers.Serializer):
    length = serializers.IntegerField(required=False, default=16)
    uppercase = serializers.BooleanField(required=False, default=True)
    lowercase = serializers.BooleanField(required=False, default=True)
    numbers = serializers.BooleanField(required=False, default=True)
    symbols = serializers.BooleanField(required=False, default=True)


class PinSerializer(serializers.Serializer):
    pin = serializers.CharField(trim_whitespace=False)
    pin_confirmation = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
