import itertools

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache
from rest_framework.test import APIClient

from app_settings.registry import settings_registry
from common.categories import category_registry
from common.menus import menu_registry
from core.constants import Roles
from users.registries import permission_registry, role_registry

_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def seeded(db):
    """Persist everything the modules registered at startup"""
    role_registry.seed()
    permission_registry.seed()
    settings_registry.seed()
    menu_registry.seed()
    category_registry.seed()
    cache.clear()


@pytest.fixture
def make_user(db):
    def factory(roles=(), password='password123', **fields):
        number = next(_counter)
        fields.setdefault('username', f'user{number}')
        fields.setdefault('email', f'user{number}@example.com')
        user = get_user_model()(**fields)
        user.set_password(password)
        user.save()
        for role in roles:
            group, _ = Group.objects.get_or_create(name=role)
            user.groups.add(group)
        return user

    return factory


@pytest.fixture
def super_admin(seeded, make_user):
    return make_user(roles=[Roles.SUPER_ADMIN], name='Super Admin')


@pytest.fixture
def guest(seeded, make_user):
    return make_user(roles=[Roles.GUEST])


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(api_client, super_admin):
    api_client.force_authenticate(super_admin)
    return api_client


@pytest.fixture
def guest_client(guest):
    client = APIClient()
    client.force_authenticate(guest)
    return client
