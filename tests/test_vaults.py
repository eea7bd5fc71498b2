import time

import pyotp
import pytest

from app_settings.services import SettingsService
from audit.models import AuditEvent, AuditLog
from common.models import Category
from core.constants import Roles, VaultType
from core.exceptions import ValidationError
from vaults.fields import EncryptedTextField, decrypt, encrypt
from vaults.models import Vault, VaultLock
from vaults.services import SYMBOLS, VaultLockService, VaultService


@pytest.fixture
def owner(seeded, make_user):
    return make_user(roles=[Roles.MANAGER])


@pytest.fixture
def owner_client(api_client, owner):
    api_client.force_authenticate(owner)
    return api_client


@pytest.fixture
def vault(owner):
    return Vault.objects.create(
        user=owner,
        name='GitHub',
        username='octocat',
        value='hunter2',
        url='https://github.com/login',
        fields={'recovery': 'abc-def'},
    )


def enable_lock():
    SettingsService().set('vault_lock_enabled', True)


# ============================================================================
# ENCRYPTION
# ============================================================================

def test_values_are_encrypted_before_storage():
    token = EncryptedTextField().get_prep_value('hunter2')

    assert token != 'hunter2'
    assert decrypt(token) == 'hunter2'
    assert EncryptedTextField().get_prep_value('') == ''
    assert decrypt('not-a-token') is None


@pytest.mark.django_db
def test_secrets_survive_a_reload(vault):
    reloaded = Vault.objects.get(pk=vault.pk)

    assert reloaded.value == 'hunter2'
    assert reloaded.fields == {'recovery': 'abc-def'}
    assert reloaded.totp_secret is None
    assert decrypt(encrypt('ünïcode')) == 'ünïcode'


@pytest.mark.django_db
def test_secrets_are_kept_out_of_the_audit_log(owner, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        item = Vault.objects.create(user=owner, name='Bank', value='secret', totp_secret=pyotp.random_base32())

    log = AuditLog.objects.for_model(item).get(event=AuditEvent.CREATED)
    assert log.new_values['name'] == 'Bank'
    assert not {'value', 'totp_secret', 'fields'} & set(log.new_values)
    assert log.tags == ['vault', 'login']


@pytest.mark.django_db
def test_favicon_url(vault):
    assert vault.favicon_url == 'https://icons.duckduckgo.com/ip3/github.com.ico'

    vault.url = None
    assert vault.favicon_url is None


# ============================================================================
# TOTP
# ============================================================================

@pytest.mark.django_db
def test_current_totp_code(owner):
    secret = pyotp.random_base32()
    item = Vault.objects.create(user=owner, name='2FA', totp_secret=secret)

    code = item.generate_current_totp_code()

    assert item.has_totp
    assert len(code) == 6
    assert pyotp.TOTP(secret).verify(code, valid_window=1)


@pytest.mark.django_db
def test_totp_code_is_none_for_bad_or_missing_secret(vault):
    assert vault.generate_current_totp_code() is None

    vault.totp_secret = 'not base32!!'
    assert vault.generate_current_totp_code() is None


@pytest.mark.django_db
def test_generate_totp_endpoint(owner_client, owner, vault):
    missing = owner_client.post(f'/api/vaults/items/{vault.pk}/generate-totp/')
    assert missing.status_code == 422
    assert missing.data['error_code'] == 'TOTP_NOT_CONFIGURED'

    item = Vault.objects.create(user=owner, name='2FA', totp_secret=pyotp.random_base32())
    response = owner_client.post(f'/api/vaults/items/{item.pk}/generate-totp/')
    assert response.status_code == 200
    assert response.data['code'].isdigit()


# ============================================================================
# PASSWORD GENERATOR
# ============================================================================

def test_generated_password_uses_every_chosen_set():
    password = VaultService.generate_password(length=8)

    assert len(password) == 8
    assert any(char.isupper() for char in password)
    assert any(char.islower() for char in password)
    assert any(char.isdigit() for char in password)
    assert any(char in SYMBOLS for char in password)


def test_generated_password_respects_disabled_sets():
    password = VaultService.generate_password(length=40, lowercase=False, numbers=False, symbols=False)

    assert password.isalpha()
    assert password.isupper()


@pytest.mark.parametrize('options,code', [
    ({'length': 7}, 'INVALID_PASSWORD_LENGTH'),
    ({'length': 129}, 'INVALID_PASSWORD_LENGTH'),
    ({'uppercase': False, 'lowercase': False, 'numbers': False, 'symbols': False}, 'NO_CHARACTER_SET'),
])
def test_password_options_are_validated(options, code):
    with pytest.raises(ValidationError) as exc:
        VaultService.generate_password(**options)
    assert exc.value.code == code


@pytest.mark.django_db
def test_generate_password_endpoint(owner_client):
    response = owner_client.get('/api/vaults/generate-password/', {'length': '24', 'symbols': 'false'})

    assert response.status_code == 200
    assert len(response.data['password']) == 24
    assert not set(response.data['password']) & set(SYMBOLS)

    too_short = owner_client.post('/api/vaults/generate-password/', {'length': 4}, format='json')
    assert too_short.status_code == 422


# ============================================================================
# API
# ============================================================================

@pytest.mark.django_db
def test_create_and_retrieve(owner_client):
    category = Category.objects.get(slug='banking')
    response = owner_client.post('/api/vaults/items/', {
        'name': 'Bank',
        'type': VaultType.LOGIN,
        'username': '',
        'value': 's3cret',
        'url': 'https://bank.example.com',
        'category_id': category.pk,
        'fields': {'note': ''},
    }, format='json')

    assert response.status_code == 201
    assert response.data['username'] is None
    assert response.data['fields'] is None
    assert response.data['category_name'] == 'Banking'

    detail = owner_client.get(f"/api/vaults/items/{response.data['id']}/")
    assert detail.data['value'] == 's3cret'


@pytest.mark.django_db
def test_create_validates_input(owner_client):
    response = owner_client.post('/api/vaults/items/', {'name': 'x', 'type': 'spaceship'}, format='json')

    assert response.status_code == 400
    assert 'type' in response.data


@pytest.mark.django_db
def test_list_hides_secrets(owner_client, vault):
    response = owner_client.get('/api/vaults/items/')

    assert response.status_code == 200
    item = response.data['vaults']['data'][0]
    assert item['name'] == 'GitHub'
    assert not {'value', 'totp_secret', 'fields'} & set(item)
    assert response.data['types'] == Vault.TYPES
    assert any(category['name'] == 'Banking' for category in response.data['categories'])


@pytest.mark.django_db
def test_list_filters_and_search(owner_client, owner, vault):
    Vault.objects.create(user=owner, name='Visa', type=VaultType.CARD, is_favorite=True)

    cards = owner_client.get('/api/vaults/items/', {'type': VaultType.CARD})
    assert [item['name'] for item in cards.data['vaults']['data']] == ['Visa']

    favorites = owner_client.get('/api/vaults/items/', {'favorites': 'true'})
    assert favorites.data['vaults']['total'] == 1

    search = owner_client.get('/api/vaults/items/', {'search': 'octo'})
    assert [item['name'] for item in search.data['vaults']['data']] == ['GitHub']


@pytest.mark.django_db
def test_update_toggle_and_delete(owner_client, vault):
    response = owner_client.patch(f'/api/vaults/items/{vault.pk}/', {'name': 'GitHub Work'}, format='json')
    assert response.status_code == 200
    assert response.data['name'] == 'GitHub Work'
    assert response.data['value'] == 'hunter2'

    toggled = owner_client.post(f'/api/vaults/items/{vault.pk}/toggle-favorite/')
    assert toggled.data == {'is_favorite': True}

    assert owner_client.delete(f'/api/vaults/items/{vault.pk}/').status_code == 204
    assert not Vault.objects.filter(pk=vault.pk).exists()


@pytest.mark.django_db
def test_items_of_other_users_are_not_found(api_client, make_user, vault):
    api_client.force_authenticate(make_user(roles=[Roles.MANAGER]))

    assert api_client.get(f'/api/vaults/items/{vault.pk}/').status_code == 404
    assert api_client.delete(f'/api/vaults/items/{vault.pk}/').status_code == 404
    assert api_client.get('/api/vaults/items/').data['vaults']['total'] == 0


@pytest.mark.django_db
def test_vault_requires_permission(guest_client):
    assert guest_client.get('/api/vaults/items/').status_code == 403
    assert guest_client.get('/api/vaults/generate-password/').status_code == 403


# ============================================================================
# LOCK
# ============================================================================

@pytest.mark.django_db
def test_lock_endpoints_refuse_when_disabled(owner_client):
    response = owner_client.post('/api/vaults/lock/')

    assert response.status_code == 409
    assert response.data['error_code'] == 'VAULT_LOCK_DISABLED'
    assert owner_client.get('/api/vaults/lock/').data['enabled'] is False


@pytest.mark.django_db
def test_lock_unlock_flow(owner_client, owner, vault):
    enable_lock()

    assert owner_client.get('/api/vaults/items/').status_code == 200

    mismatch = owner_client.post('/api/vaults/lock/set-pin/', {'pin': '1234', 'pin_confirmation': '4321'},
                                 format='json')
    assert mismatch.data['error_code'] == 'PIN_CONFIRMATION_MISMATCH'

    response = owner_client.post('/api/vaults/lock/set-pin/', {'pin': '1234', 'pin_confirmation': '1234'},
                                 format='json')
    assert response.status_code == 200
    assert response.data['unlocked'] is True
    assert VaultLock.objects.get(user=owner).pin_hash != '1234'
    assert owner_client.get('/api/vaults/items/').status_code == 200

    assert owner_client.post('/api/vaults/lock/').data['unlocked'] is False

    locked = owner_client.get('/api/vaults/items/')
    assert locked.status_code == 423
    assert locked.data['error_code'] == 'VAULT_LOCKED'

    wrong = owner_client.post('/api/vaults/lock/unlock/', {'pin': '9999'}, format='json')
    assert wrong.status_code == 422
    assert wrong.data['error_code'] == 'INVALID_PIN'

    unlocked = owner_client.post('/api/vaults/lock/unlock/', {'pin': '1234'}, format='json')
    assert unlocked.status_code == 200
    assert unlocked.data['redirect'] == '/api/vaults/items/'
    assert owner_client.get('/api/vaults/items/').status_code == 200


@pytest.mark.django_db
def test_unlock_expires_after_timeout(seeded, owner):
    enable_lock()
    service = VaultLockService()
    now = int(time.time())

    session = {'vault_unlocked': True, 'vault_unlocked_at': now - 60}
    assert service.is_locked(owner, session) is False

    session = {'vault_unlocked': True, 'vault_unlocked_at': now - 16 * 60}
    assert service.is_locked(owner, session) is True
    assert session == {}

    for unlocked_at in (now + 600, True, 'yesterday', None, 0):
        session = {'vault_unlocked': True, 'vault_unlocked_at': unlocked_at, 'vault_intended_url': '/vault'}
        assert service.is_locked(owner, session) is True
        assert session == {'vault_intended_url': '/vault'}


@pytest.mark.django_db
def test_timeout_is_clamped(seeded):
    SettingsService().set('vault_lock_timeout', 5000)

    assert VaultLockService().get_timeout_minutes() == 1440
