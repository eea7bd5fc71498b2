"""
Vault services.

VaultService manages a user's encrypted items. VaultLockService handles the
optional PIN lock, whose state lives in the session:

- `vault_unlocked`: bool
- `vault_unlocked_at`: unix timestamp of the last unlock
- `vault_intended_url`: page to return to after unlocking
"""
import secrets
import string
import time
from typing import Optional

from app_settings.services import get_setting
from common.models import Category
from core.cache import get_cache_service
from core.constants import DEFAULT_PER_PAGE_OPTIONS
from core.datatable import DatatableQueryService
from core.exceptions import BusinessLogicError, ValidationError
from core.repositories import BaseRepository
from core.services import BaseService
from core.validators import BOOLEAN_TRUE_VALUES, PasswordGeneratorValidator, PinValidator
from vaults.models import Vault, VaultLock

SESSION_UNLOCKED = 'vault_unlocked'
SESSION_UNLOCKED_AT = 'vault_unlocked_at'
SESSION_INTENDED_URL = 'vault_intended_url'

CATEGORY_TYPE = 'vault'
CATEGORIES_CACHE_KEY = 'vault:categories:dropdown'
CATEGORIES_CACHE_TAG = 'categories'
CATEGORIES_CACHE_TTL = 24 * 60 * 60

SYMBOLS = '!@#$%^&*()-_=+[]{};:,.<>?'


class VaultRepository(BaseRepository):
    """Data access for vault items"""

    def __init__(self):
        super().__init__(Vault)

    def for_user(self, user):
        return self.model.objects.for_user(user).select_related('category')


class VaultService(BaseService):
    """
    Owner-scoped CRUD for vault items.
    Items of other users are reported as not found.
    """

    SEARCH_FIELDS = ['name', 'username', 'email', 'issuer', 'url']
    ALLOWED_SORTS = ['name', 'created_at', 'updated_at', 'type']

    def __init__(self):
        super().__init__()
        self.repository = VaultRepository()
        self.datatable = DatatableQueryService()

    def list(self, user, params) -> dict:
        queryset = self.repository.for_user(user)

        if params.get('type') in Vault.TYPES:
            queryset = queryset.filter(type=params['type'])
        if params.get('category_id'):
            queryset = queryset.filter(category_id=params['category_id'])
        if str(params.get('favorites') or '').lower() in BOOLEAN_TRUE_VALUES:
            queryset = queryset.favorites()

        default_per_page = self.get_default_per_page()
        allowed_per_page = tuple(sorted(set(DEFAULT_PER_PAGE_OPTIONS) | {default_per_page}))

        return self.datatable.build(
            queryset,
            params,
            search_fields=self.SEARCH_FIELDS,
            allowed_sorts=self.ALLOWED_SORTS,
            default_sort='created_at',
            default_direction='desc',
            allowed_per_page=allowed_per_page,
            default_per_page=default_per_page,
        )

    @staticmethod
    def get_default_per_page() -> int:
        try:
            per_page = int(get_setting('vault_per_page', 20))
        except (TypeError, ValueError):
            per_page = 20
        return per_page if per_page > 0 else 20

    def get(self, user, vault_id) -> Vault:
        return self.repository.get_by_id_or_raise(vault_id, user=user)

    def create(self, user, data: dict) -> Vault:
        vault = self.repository.create(user=user, **data)
        self.log_info("Vault item created", vault_id=str(vault.id), user_id=user.id)
        return vault

    def update(self, user, vault_id, data: dict) -> Vault:
        vault = self.get(user, vault_id)
        for field, value in data.items():
            setattr(vault, field, value)
        vault.save()
        self.log_info("Vault item updated", vault_id=str(vault.id), user_id=user.id)
        return vault

    def delete(self, user, vault_id):
        vault = self.get(user, vault_id)
        vault.delete()
        self.log_info("Vault item deleted", vault_id=str(vault_id), user_id=user.id)

    def toggle_favorite(self, user, vault_id) -> Vault:
        vault = self.get(user, vault_id)
        vault.is_favorite = not vault.is_favorite
        vault.save(update_fields=['is_favorite', 'updated_at'])
        return vault

    def generate_totp(self, user, vault_id) -> str:
        vault = self.get(user, vault_id)
        if not vault.totp_secret:
            raise ValidationError(
                message="No TOTP secret configured for this vault item.",
                code="TOTP_NOT_CONFIGURED",
                details={"field": "totp_secret"}
            )
        code = vault.generate_current_totp_code()
        if code is None:
            raise ValidationError(
                message="The TOTP secret for this vault item is invalid.",
                code="INVALID_TOTP_SECRET",
                details={"field": "totp_secret"}
            )
        return code

    @staticmethod
    def generate_password(length: int = 16, uppercase: bool = True, lowercase: bool = True,
                          numbers: bool = True, symbols: bool = True) -> str:
        """
        Random password containing at least one character of every chosen set.

        Raises:
            ValidationError: length outside 8-128 or no character set chosen
        """
        PasswordGeneratorValidator.validate_options(length, uppercase, lowercase, numbers, symbols)

        pools = []
        if uppercase:
            pools.append(string.ascii_uppercase)
        if lowercase:
            pools.append(string.ascii_lowercase)
        if numbers:
            pools.append(string.digits)
        if symbols:
            pools.append(SYMBOLS)

        alphabet = ''.join(pools)
        characters = [secrets.choice(pool) for pool in pools]
        characters += [secrets.choice(alphabet) for _ in range(length - len(characters))]

        # Fisher-Yates with a CSPRNG
        for index in range(len(characters) - 1, 0, -1):
            swap = secrets.randbelow(index + 1)
            characters[index], characters[swap] = characters[swap], characters[index]

        return ''.join(characters)

    @staticmethod
    def get_categories() -> list:
        return get_cache_service().remember(
            CATEGORIES_CACHE_KEY,
            CATEGORIES_CACHE_TTL,
            lambda: list(Category.objects.filter(type=CATEGORY_TYPE).order_by('name').values('id', 'name', 'color')),
            tags=CATEGORIES_CACHE_TAG,
            context='VaultService',
        )


class VaultLockService(BaseService):
    """PIN lock state for the vault, kept in the session"""

    MIN_TIMEOUT = 1
    MAX_TIMEOUT = 1440

    @staticmethod
    def is_enabled() -> bool:
        return bool(get_setting('vault_lock_enabled', False))

    def ensure_enabled(self):
        if not self.is_enabled():
            raise BusinessLogicError(
                message="Vault lock is currently disabled.",
                code="VAULT_LOCK_DISABLED"
            )

    def get_timeout_minutes(self) -> int:
        try:
            timeout = int(get_setting('vault_lock_timeout', 15))
        except (TypeError, ValueError):
            timeout = 15
        return max(self.MIN_TIMEOUT, min(timeout, self.MAX_TIMEOUT))

    @staticmethod
    def get_lock(user) -> Optional[VaultLock]:
        return VaultLock.objects.filter(user=user).first()

    @staticmethod
    def _mark_unlocked(session):
        session[SESSION_UNLOCKED] = True
        session[SESSION_UNLOCKED_AT] = int(time.time())

    @staticmethod
    def _clear(session):
        session.pop(SESSION_UNLOCKED, None)
        session.pop(SESSION_UNLOCKED_AT, None)

    def set_pin(self, user, pin, pin_confirmation, session) -> VaultLock:
        self.ensure_enabled()
        PinValidator.validate_pin(pin, pin_confirmation, require_confirmation=True)

        lock = self.get_lock(user) or VaultLock(user=user)
        lock.set_pin(pin)
        lock.save()
        self._mark_unlocked(session)

        self.log_info("Vault PIN set", user_id=user.id)
        return lock

    def unlock(self, user, pin, session) -> Optional[str]:
        """Unlock the vault and return the page the user was headed to, if any"""
        self.ensure_enabled()
        lock = self.get_lock(user)
        if lock is None:
            return session.pop(SESSION_INTENDED_URL, None)

        PinValidator.validate_pin(pin)
        if not lock.check_pin(pin):
            self.log_warning("Vault unlock failed", user_id=user.id)
            raise ValidationError(
                message="The provided PIN is incorrect.",
                code="INVALID_PIN",
                details={"field": "pin"}
            )

        self._mark_unlocked(session)
        self.log_info("Vault unlocked", user_id=user.id)
        return session.pop(SESSION_INTENDED_URL, None)

    def lock(self, session):
        self.ensure_enabled()
        self._clear(session)

    @staticmethod
    def status(session) -> dict:
        return {
            'unlocked': bool(session.get(SESSION_UNLOCKED, False)),
            'unlocked_at': session.get(SESSION_UNLOCKED_AT),
        }

    def is_locked(self, user, session) -> bool:
        """
        True unless the session holds a valid, unexpired unlock.
        Locking clears the unlock keys from the session.
        """
        self.ensure_enabled()

        unlocked = bool(session.get(SESSION_UNLOCKED, False))
        unlocked_at = session.get(SESSION_UNLOCKED_AT)
        now = time.time()

        locked = (
            not unlocked
            or not isinstance(unlocked_at, (int, float))
            or isinstance(unlocked_at, bool)
            or unlocked_at <= 0
            or unlocked_at > now
            or now - unlocked_at > self.get_timeout_minutes() * 60
        )
        if locked:
            self._clear(session)
        return locked

    @staticmethod
    def remember_intended_url(session, url: str):
        session[SESSION_INTENDED_URL] = url
