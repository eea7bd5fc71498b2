"""
Fernet-encrypted model fields.

The key comes from VAULT_ENCRYPTION_KEY, or is derived from SECRET_KEY when
no key is configured. Empty values are stored as-is.
"""
import base64
import hashlib
import json
import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

logger = logging.getLogger(__name__)

EMPTY_VALUES = (None, '')


@lru_cache(maxsize=None)
def _fernet_for(key: str) -> Fernet:
    return Fernet(key.encode('utf-8') if isinstance(key, str) else key)


def get_fernet() -> Fernet:
    key = getattr(settings, 'VAULT_ENCRYPTION_KEY', None)
    if not key:
        digest = hashlib.sha256(settings.SECRET_KEY.encode('utf-8')).digest()
        key = base64.urlsafe_b64encode(digest).decode('ascii')
    return _fernet_for(key)


def encrypt(value: str) -> str:
    return get_fernet().encrypt(value.encode('utf-8')).decode('ascii')


def decrypt(token: str):
    try:
        return get_fernet().decrypt(token.encode('ascii')).decode('utf-8')
    except (InvalidToken, UnicodeEncodeError) as e:
        logger.warning(f"EncryptedField: unable to decrypt stored value: {type(e).__name__}")
        return None


class EncryptedTextField(models.TextField):
    """Text stored as a Fernet token"""

    def from_db_value(self, value, expression, connection):
        if value in EMPTY_VALUES:
            return value
        return decrypt(value)

    def get_prep_value(self, value):
        value = super().get_prep_value(value)
        if value in EMPTY_VALUES:
            return value
        return encrypt(str(value))


class EncryptedJSONField(models.TextField):
    """JSON document stored as a Fernet token"""

    def from_db_value(self, value, expression, connection):
        if value in EMPTY_VALUES:
            return None
        decrypted = decrypt(value)
        if decrypted is None:
            return None
        return json.loads(decrypted)

    def to_python(self, value):
        if isinstance(value, str) and value:
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value

    def get_prep_value(self, value):
        if value in EMPTY_VALUES:
            return None
        return encrypt(json.dumps(value, cls=DjangoJSONEncoder))

    def value_to_string(self, obj):
        return json.dumps(self.value_from_object(obj), cls=DjangoJSONEncoder)
