import time

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache

from core import cache as cache_module
from core.cache import CacheMetricsService, CacheService, CircuitBreaker
from core.datatable import DatatableQueryService
from core.exceptions import CacheConnectionException, CacheTimeoutException, ValidationError
from core.validators import PinValidator, ScheduleValidator, SettingValueValidator


class BrokenStore:
    """Cache backend whose every call fails like an unreachable server"""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ConnectionError('connection refused')
        return fail


# ============================================================================
# CACHE
# ============================================================================

def test_remember_computes_once():
    service = CacheService(store=cache)
    calls = []

    def compute():
        calls.append(1)
        return 'value'

    assert service.remember('key', 60, compute) == 'value'
    assert service.remember('key', 60, compute) == 'value'
    assert len(calls) == 1


def test_flush_tag_invalidates_only_tagged_entries():
    service = CacheService(store=cache)
    service.put('a', 1, tags='alpha')
    service.put('b', 2, tags=['beta'])

    assert service.flush('alpha') is True
    assert service.get('a', tags='alpha') is None
    assert service.get('b', tags='beta') == 2


def test_entry_with_multiple_tags_is_invalidated_by_any_of_them():
    service = CacheService(store=cache)
    service.put('shared', 'x', tags=['one', 'two'])

    service.clear_tag('two')

    assert service.get('shared', default='missing', tags=['one', 'two']) == 'missing'


def test_forget_removes_key():
    service = CacheService(store=cache)
    service.put('gone', 1)

    assert service.forget('gone') is True
    assert service.get('gone') is None


def test_broken_store_degrades_to_callback(settings):
    settings.CACHE_RETRY_DELAY_MS = 0
    settings.CACHE_MAX_RETRIES = 1
    breaker = CircuitBreaker('broken-test', failure_threshold=100, store=cache)
    service = CacheService(store=BrokenStore(), circuit_breaker=breaker)

    assert service.remember('key', 60, lambda: 'computed') == 'computed'
    assert service.get('key', default='fallback') == 'fallback'
    assert service.put('key', 1) is False
    assert service.flush('tag') is False


def test_forget_and_flush_report_failure_on_broken_store(settings):
    settings.CACHE_RETRY_DELAY_MS = 0
    settings.CACHE_MAX_RETRIES = 0
    breaker = CircuitBreaker('broken-delete', failure_threshold=100, store=cache)
    service = CacheService(store=BrokenStore(), circuit_breaker=breaker)

    assert service.forget('key') is False
    assert service.forget('key', tags='alpha') is False
    assert service.flush() is False


def test_classify_exception():
    assert isinstance(CacheService.classify_exception(Exception('Connection refused')), CacheConnectionException)
    assert isinstance(CacheService.classify_exception(Exception('read timed out')), CacheTimeoutException)


def test_circuit_breaker_opens_and_recovers():
    breaker = CircuitBreaker('unit', failure_threshold=2, success_threshold=1, timeout=30, store=cache)

    breaker.record_failure()
    assert breaker.get_state() == CircuitBreaker.STATE_CLOSED
    breaker.record_failure()
    assert breaker.is_open()
    assert breaker.allows_request() is False

    cache.set('circuit_breaker:unit:last_failure', time.time() - 60)

    assert breaker.allows_request() is True
    assert breaker.get_state() == CircuitBreaker.STATE_HALF_OPEN
    breaker.record_success()
    assert breaker.get_state() == CircuitBreaker.STATE_CLOSED


def test_open_circuit_rejects_requests():
    breaker = CircuitBreaker('rejecting', failure_threshold=1, timeout=3600, store=cache)
    breaker.record_failure()

    assert breaker.allows_request() is False
    breaker.reset()
    assert breaker.allows_request() is True


def test_failure_while_half_open_reopens_and_resets_counters():
    breaker = CircuitBreaker('relapse', failure_threshold=1, success_threshold=2, timeout=30, store=cache)
    breaker.record_failure()
    cache.set('circuit_breaker:relapse:last_failure', time.time() - 60)

    assert breaker.allows_request() is True
    breaker.record_success()
    assert breaker.get_state() == CircuitBreaker.STATE_HALF_OPEN

    breaker.record_failure()

    assert breaker.get_state() == CircuitBreaker.STATE_OPEN
    assert cache.get('circuit_breaker:relapse:successes') is None
    assert cache.get('circuit_breaker:relapse:failures') is None
    assert breaker.allows_request() is False


# ============================================================================
# METRICS
# ============================================================================

@pytest.fixture
def metrics():
    return CacheMetricsService(store=cache)


def test_metrics_totals_and_hit_rate(metrics):
    metrics.record_hit('get', 2.0, context='menus')
    metrics.record_hit('get', 4.0, context='menus')
    metrics.record_miss('get', 6.0)
    metrics.record_write('put', 1.0)
    metrics.record_error('get', 'boom', context='menus')

    stats = metrics.get_stats()
    assert (stats['hits'], stats['misses'], stats['writes'], stats['deletes'], stats['errors']) == (2, 1, 1, 0, 1)
    assert stats['total_operations'] == 4
    assert stats['hit_rate'] == 66.67
    assert stats['miss_rate'] == 33.33
    assert stats['average_duration_ms'] == 3.25

    get_stats = metrics.get_operation_stats('get')
    assert get_stats['max_duration_ms'] == 6.0
    assert get_stats['min_duration_ms'] == 2.0
    assert get_stats['average_duration_ms'] == 4.0

    context = metrics.get_context_stats('menus')
    assert (context['hits'], context['misses'], context['errors']) == (2, 0, 1)
    assert context['hit_rate'] == 100.0


def test_metrics_keep_bounded_durations(metrics):
    for duration in range(105):
        metrics.record_hit('get', float(duration))
    for duration in range(1000):
        metrics.record_write('put', 1000.0)

    get_stats = metrics.get_operation_stats('get')
    assert get_stats['hits'] == 105
    assert get_stats['min_duration_ms'] == 5.0
    assert get_stats['max_duration_ms'] == 104.0
    assert metrics.get_stats()['average_duration_ms'] == 1000.0


def test_slow_hit_is_logged(metrics, monkeypatch):
    warnings = []
    monkeypatch.setattr(cache_module.logger, 'warning', warnings.append)

    metrics.record_hit('get', 50.0)
    assert warnings == []

    metrics.record_hit('get', 150.0, context='menus')
    assert len(warnings) == 1
    assert 'slow cache operation' in warnings[0]


def test_metrics_clear(metrics):
    metrics.record_hit('get', 1.0, context='menus')

    metrics.clear()

    assert metrics.get_stats()['hits'] == 0
    assert metrics.get_operation_stats('get')['max_duration_ms'] == 0
    assert metrics.get_context_stats('menus')['hits'] == 0


# ============================================================================
# DATATABLE
# ============================================================================

@pytest.fixture
def users(make_user):
    return [make_user(username=f'person{i:02d}', name=f'Person {i:02d}') for i in range(25)]


@pytest.mark.django_db
def test_datatable_paginates_and_reports_bounds(users):
    page = DatatableQueryService().build(
        get_user_model().objects.all(),
        {'page': '2', 'per_page': '10', 'sort': 'username', 'direction': 'asc'},
        search_fields=['username'],
        allowed_sorts=['username'],
        default_sort='username',
    )

    assert page['total'] == 25
    assert page['last_page'] == 3
    assert page['current_page'] == 2
    assert page['from'] == 11
    assert page['to'] == 20
    assert page['data'][0].username == 'person10'


@pytest.mark.django_db
def test_datatable_falls_back_on_invalid_params(users):
    page = DatatableQueryService().build(
        get_user_model().objects.all(),
        {'page': '99', 'per_page': '7', 'sort': 'password', 'direction': 'sideways'},
        allowed_sorts=['username'],
        default_sort='username',
        default_direction='asc',
    )

    assert page['per_page'] == 10
    assert page['current_page'] == 3
    assert page['data'][-1].username == 'person24'


@pytest.mark.django_db
def test_datatable_search_is_or_across_fields(users, make_user):
    make_user(username='zed', name='Special Name')
    page = DatatableQueryService().build(
        get_user_model().objects.all(),
        {'search': 'special'},
        search_fields=['username', 'name'],
        allowed_sorts=['username'],
        default_sort='username',
    )

    assert page['total'] == 1
    assert page['data'][0].username == 'zed'


def test_default_sort_must_be_allowed():
    with pytest.raises(ValueError):
        DatatableQueryService().apply_sorting(get_user_model().objects.all(), {}, allowed_sorts=['username'])


@pytest.mark.django_db
def test_empty_page():
    page = DatatableQueryService().apply_pagination(get_user_model().objects.none(), {})

    assert page['total'] == 0
    assert page['last_page'] == 1
    assert page['from'] is None
    assert page['to'] is None


# ============================================================================
# VALIDATORS
# ============================================================================

def test_schedule_validator():
    assert ScheduleValidator.parse_time('02:30') == (2, 30)
    with pytest.raises(ValidationError) as exc:
        ScheduleValidator.parse_time('25:00')
    assert exc.value.code == 'INVALID_SCHEDULE_TIME'


def test_setting_value_validator_normalizes():
    assert SettingValueValidator.validate('n', 'integer', ' 42 ') == '42'
    assert SettingValueValidator.validate('b', 'boolean', 'yes') == '1'
    assert SettingValueValidator.validate('b', 'boolean', False) == '0'
    with pytest.raises(ValidationError):
        SettingValueValidator.validate('n', 'integer', 'abc')


def test_pin_validator():
    PinValidator.validate_pin('1234', '1234', require_confirmation=True)
    with pytest.raises(ValidationError) as exc:
        PinValidator.validate_pin('12')
    assert exc.value.code == 'INVALID_PIN_LENGTH'
    with pytest.raises(ValidationError) as exc:
        PinValidator.validate_pin('1234', '4321', require_confirmation=True)
    assert exc.value.code == 'PIN_CONFIRMATION_MISMATCH'
