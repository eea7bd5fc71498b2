"""
Health endpoints for AdminHub

- /health/        liveness, no dependencies touched
- /health/ready/  database, cache service and settings snapshot
- /health/deep/   readiness plus latencies, row counts and registry sizes

Cache checks go through the shared CacheService so an open circuit breaker
reports the cache as unavailable without touching the backend.
"""

import logging
import time

from django.db import connection
from django.http import JsonResponse
from django.urls import path
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET

from core.cache import get_cache_service

logger = logging.getLogger(__name__)

HEALTH_KEY = 'health:ready'


def _timed(check):
    """Run check() and return (ok, latency_ms, error)"""
    start = time.perf_counter()
    try:
        ok = bool(check())
        error = None if ok else 'unexpected result'
    except Exception as e:
        ok, error = False, str(e)
    return ok, round((time.perf_counter() - start) * 1000, 2), error


def _database_ok():
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')
        return cursor.fetchone() == (1,)


def _cache_ok():
    service = get_cache_service()
    breaker = service.circuit_breaker
    if breaker is not None and breaker.is_open():
        raise ConnectionError(f"circuit breaker '{breaker.name}' is open")

    def round_trip():
        service.store.set(HEALTH_KEY, 'ok', 10)
        value = service.store.get(HEALTH_KEY)
        service.store.delete(HEALTH_KEY)
        return value == 'ok'

    return service.execute_with_retry(round_trip, 'health', context='health')


def _settings_ok():
    from app_settings.services import SettingsService

    SettingsService().all()
    return True


CHECKS = (
    ('database', _database_ok),
    ('cache', _cache_ok),
    ('settings', _settings_ok),
)


def _run_checks():
    results, errors = {}, {}
    for name, check in CHECKS:
        ok, latency, error = _timed(check)
        results[name] = {'status': ok, 'latency_ms': latency}
        if error:
            errors[name] = error
            logger.error(f"HealthCheck: {name} check failed | Context: {{'error': {error!r}}}")
    return results, errors


def _breaker_state():
    breaker = get_cache_service().circuit_breaker
    return breaker.get_state() if breaker is not None else 'disabled'


@csrf_exempt
@require_GET
def health_check(request):
    return JsonResponse({'status': 'healthy', 'timestamp': time.time()})


@csrf_exempt
@require_GET
def readiness_check(request):
    results, errors = _run_checks()
    ready = not errors

    return JsonResponse({
        'status': 'ready' if ready else 'not_ready',
        'timestamp': time.time(),
        'checks': {name: result['status'] for name, result in results.items()},
        'cache_circuit_breaker': _breaker_state(),
        'errors': errors or None,
    }, status=200 if ready else 503)


@csrf_exempt
@require_GET
def deep_health_check(request):
    from django.contrib.auth import get_user_model

    from app_settings.services import SettingsService
    from audit.models import AuditLog
    from common.menus import menu_registry
    from dashboard.widgets import widget_registry
    from notifications.models import Notification
    from users.registries import permission_registry
    from vaults.models import Vault

    checks, errors = _run_checks()

    try:
        checks['models'] = {'status': True, 'details': {
            'users': get_user_model().objects.count(),
            'audit_logs': AuditLog.objects.count(),
            'vault_items': Vault.objects.count(),
            'notifications': Notification.objects.count(),
        }}
    except Exception as e:
        checks['models'] = {'status': False, 'details': {}}
        errors['models'] = str(e)
        logger.error(f"HealthCheck: model counts failed | Context: {{'error': {str(e)!r}}}")

    checks['cache_circuit_breaker'] = _breaker_state()
    checks['registries'] = {
        'menus': len(menu_registry.get_registered_menus()),
        'permission_groups': len(permission_registry.get_permissions()),
        'widgets': len(widget_registry.get_registered_widgets()),
        'settings': sum(len(group) for group in SettingsService().all().values()) if checks['settings']['status'] else 0,
    }

    healthy = checks['database']['status'] and checks['cache']['status']
    return JsonResponse({
        'status': 'healthy' if healthy else 'unhealthy',
        'timestamp': time.time(),
        'checks': checks,
        'errors': errors or None,
    }, status=200 if healthy else 503)


def get_health_urls():
    return [
        path('health/', health_check, name='health_check'),
        path('health/ready/', readiness_check, name='readiness_check'),
        path('health/deep/', deep_health_check, name='deep_health_check'),
    ]
