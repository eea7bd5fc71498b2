"""
Tag-aware cache layer.

Wraps a Django cache backend with:
- tag based invalidation (emulated with per-tag version counters, so it works
  on locmem, database, memcached and redis backends alike)
- retry with exponential backoff for transient failures
- a circuit breaker that short-circuits the store after repeated failures
- optional hit/miss/duration metrics

Every public operation degrades gracefully: reads fall back to the default or
to the callback, writes and deletes return False.
"""
import hashlib
import logging
import time
from typing import Any, Callable, Iterable, Optional, Union

from django.conf import settings
from django.core.cache import caches

from core.exceptions import (
    CacheException,
    CacheConnectionException,
    CacheTimeoutException,
    CacheTagException,
)

logger = logging.getLogger(__name__)

TAG_VERSION_PREFIX = 'cache_tag'
TAGGED_KEY_PREFIX = 'tagged'

_MISSING = object()

Tags = Optional[Union[str, Iterable[str]]]


def _normalize_tags(tags: Tags) -> list:
    if tags is None:
        return []
    if isinstance(tags, str):
        return [tags]
    return [tag for tag in tags if tag]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


# ============================================================================
# CIRCUIT BREAKER
# ============================================================================

class CircuitBreaker:
    """
    Closed/open/half-open breaker whose state lives in the cache store itself.

    - CLOSED: requests flow, failures are counted
    - OPEN: requests are rejected until `timeout` seconds pass since the last failure
    - HALF_OPEN: requests flow, `success_threshold` successes close the circuit,
      a single failure reopens it
    """

    STATE_CLOSED = 'closed'
    STATE_OPEN = 'open'
    STATE_HALF_OPEN = 'half_open'

    CACHE_PREFIX = 'circuit_breaker'

    def __init__(self, name: str, failure_threshold: int = 5, timeout: int = 60,
                 success_threshold: int = 2, store=None):
        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.store = store if store is not None else caches['default']

    def allows_request(self) -> bool:
        """Return True when a request may hit the store"""
        state = self.get_state()

        if state == self.STATE_CLOSED:
            return True

        if state == self.STATE_OPEN:
            if self._should_attempt_recovery():
                self._set_state(self.STATE_HALF_OPEN)
                logger.info(f"CircuitBreaker '{self.name}': transitioning to half-open state")
                return True
            return False

        return True

    def is_open(self) -> bool:
        return self.get_state() == self.STATE_OPEN

    def record_success(self):
        state = self.get_state()

        if state == self.STATE_HALF_OPEN:
            successes = self._get(self._key('successes'), 0) + 1
            self._put(self._key('successes'), successes)
            if successes >= self.success_threshold:
                self._set_state(self.STATE_CLOSED)
                self._reset_counters()
                logger.info(f"CircuitBreaker '{self.name}': circuit closed after successful recovery")
        elif state == self.STATE_CLOSED:
            self.store.delete(self._key('failures'))

    def record_failure(self):
        state = self.get_state()

        if state == self.STATE_HALF_OPEN:
            self._set_state(self.STATE_OPEN)
            self._put(self._key('last_failure'), time.time())
            self._reset_counters()
            logger.warning(f"CircuitBreaker '{self.name}': circuit reopened after failure in half-open state")
            return

        failures = self._get(self._key('failures'), 0) + 1
        self._put(self._key('failures'), failures)
        self._put(self._key('last_failure'), time.time())

        if failures >= self.failure_threshold:
            self._set_state(self.STATE_OPEN)
            logger.error(
                f"CircuitBreaker '{self.name}': circuit opened due to repeated failures "
                f"({failures}/{self.failure_threshold})"
            )

    def get_state(self) -> str:
        return self._get(self._key('state'), self.STATE_CLOSED)

    def reset(self):
        """Force the breaker back to closed and drop all counters"""
        self._set_state(self.STATE_CLOSED)
        self._reset_counters()
        self.store.delete(self._key('last_failure'))

    def _should_attempt_recovery(self) -> bool:
        last_failure = self._get(self._key('last_failure'))
        if last_failure is None:
            return True
        return (time.time() - last_failure) >= self.timeout

    def _set_state(self, state: str):
        self._put(self._key('state'), state)

    def _reset_counters(self):
        self.store.delete_many([self._key('failures'), self._key('successes')])

    def _key(self, suffix: str) -> str:
        return f"{self.CACHE_PREFIX}:{self.name}:{suffix}"

    def _get(self, key, default=None):
        return self.store.get(key, default)

    def _put(self, key, value):
        self.store.set(key, value, self.timeout * 2)


# ============================================================================
# METRICS
# ============================================================================

class CacheMetricsService:
    """Counts hits, misses, writes, deletes and errors per operation and context"""

    METRICS_PREFIX = 'cache_metrics'
    METRICS_TTL = 3600
    SLOW_OPERATION_MS = 100
    MAX_OPERATION_DURATIONS = 100
    MAX_TOTAL_DURATIONS = 1000
    INDEX_KEY = 'cache_metrics:__keys__'

    COUNTERS = ('hits', 'misses', 'writes', 'deletes', 'errors')

    def __init__(self, store=None):
        self.store = store if store is not None else caches['default']

    def record_hit(self, operation: str, duration: float, context: Optional[str] = None):
        self._record(operation, 'hits', duration, context)
        if duration > self.SLOW_OPERATION_MS:
            logger.warning(
                f"CacheService: slow cache operation detected | Context: "
                f"{{'operation': '{operation}', 'duration_ms': {round(duration, 2)}, 'context': {context!r}}}"
            )

    def record_miss(self, operation: str, duration: float, context: Optional[str] = None):
        self._record(operation, 'misses', duration, context)

    def record_write(self, operation: str, duration: float, context: Optional[str] = None):
        self._record(operation, 'writes', duration, context)

    def record_delete(self, operation: str, duration: float, context: Optional[str] = None):
        self._record(operation, 'deletes', duration, context)

    def record_error(self, operation: str, error: str, context: Optional[str] = None):
        self._increment(f"{operation}.errors")
        self._increment('total.errors')
        if context is not None:
            self._increment(f"context.{context}.errors")

    def get_stats(self) -> dict:
        stats = self._summarize('total')
        durations = self._get('total.durations', [])
        stats['average_duration_ms'] = self._average(durations)
        return stats

    def get_operation_stats(self, operation: str) -> dict:
        stats = {'operation': operation, **self._summarize(operation)}
        durations = self._get(f"{operation}.durations", [])
        stats['average_duration_ms'] = self._average(durations)
        stats['max_duration_ms'] = round(max(durations), 2) if durations else 0
        stats['min_duration_ms'] = round(min(durations), 2) if durations else 0
        return stats

    def get_context_stats(self, context: str) -> dict:
        return {'context': context, **self._summarize(f"context.{context}")}

    def clear(self):
        keys = self.store.get(self.INDEX_KEY, [])
        self.store.delete_many([self._full_key(key) for key in keys] + [self.INDEX_KEY])

    def _record(self, operation, counter, duration, context):
        self._increment(f"{operation}.{counter}")
        self._add_duration(operation, duration)
        self._increment(f"total.{counter}")
        if context is not None:
            self._increment(f"context.{context}.{counter}")

    def _summarize(self, prefix: str) -> dict:
        counts = {name: self._get(f"{prefix}.{name}", 0) for name in self.COUNTERS}
        lookups = counts['hits'] + counts['misses']
        hit_rate = (counts['hits'] / lookups) * 100 if lookups else 0
        return {
            **counts,
            'total_operations': lookups + counts['writes'] + counts['deletes'],
            'hit_rate': round(hit_rate, 2),
            'miss_rate': round(100 - hit_rate, 2),
        }

    @staticmethod
    def _average(durations) -> float:
        return round(sum(durations) / len(durations), 2) if durations else 0

    def _increment(self, key: str):
        self._put(key, self._get(key, 0) + 1)

    def _add_duration(self, operation: str, duration: float):
        durations = self._get(f"{operation}.durations", [])
        durations.append(duration)
        self._put(f"{operation}.durations", durations[-self.MAX_OPERATION_DURATIONS:])

        total = self._get('total.durations', [])
        total.append(duration)
        self._put('total.durations', total[-self.MAX_TOTAL_DURATIONS:])

    def _full_key(self, key: str) -> str:
        return f"{self.METRICS_PREFIX}:{key}"

    def _get(self, key: str, default=None):
        return self.store.get(self._full_key(key), default)

    def _put(self, key: str, value):
        self.store.set(self._full_key(key), value, self.METRICS_TTL)
        index = self.store.get(self.INDEX_KEY, [])
        if key not in index:
            index.append(key)
            self.store.set(self.INDEX_KEY, index, self.METRICS_TTL)


# ============================================================================
# CACHE SERVICE
# ============================================================================

class CacheService:
    """
    Resilient, tag-aware wrapper around a Django cache backend.

    Example:
        cache_service.remember('menus:user:1', 86400, build_menus, tags=['menus'])
        cache_service.flush('menus')
    """

    def __init__(self, store=None, metrics: Optional[CacheMetricsService] = None,
                 circuit_breaker: Optional[CircuitBreaker] = None):
        self.store = store if store is not None else caches['default']
        self.metrics = metrics
        if self.metrics is None and self._is_metrics_enabled():
            self.metrics = CacheMetricsService(self.store)

        self.circuit_breaker = circuit_breaker
        if self.circuit_breaker is None and self._is_circuit_breaker_enabled():
            self.circuit_breaker = CircuitBreaker(
                'cache',
                failure_threshold=getattr(settings, 'CACHE_CIRCUIT_BREAKER_FAILURE_THRESHOLD', 5),
                timeout=getattr(settings, 'CACHE_CIRCUIT_BREAKER_TIMEOUT', 60),
                success_threshold=getattr(settings, 'CACHE_CIRCUIT_BREAKER_SUCCESS_THRESHOLD', 2),
                store=self.store,
            )

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @staticmethod
    def _is_metrics_enabled() -> bool:
        return getattr(settings, 'CACHE_METRICS_ENABLED', False)

    @staticmethod
    def _is_retry_enabled() -> bool:
        return getattr(settings, 'CACHE_RETRY_ENABLED', True)

    @staticmethod
    def _is_circuit_breaker_enabled() -> bool:
        return getattr(settings, 'CACHE_CIRCUIT_BREAKER_ENABLED', True)

    # ------------------------------------------------------------------
    # Retry and classification
    # ------------------------------------------------------------------

    @staticmethod
    def classify_exception(error: Exception) -> CacheException:
        """Map an arbitrary backend error onto the cache exception hierarchy"""
        if isinstance(error, CacheException):
            return error

        message = str(error)
        lower = message.lower()

        if any(token in lower for token in ('connection', 'refused', 'unreachable', 'no connection')):
            return CacheConnectionException(message)
        if 'timeout' in lower or 'timed out' in lower:
            return CacheTimeoutException(message)
        if 'tag' in lower:
            return CacheTagException(message)
        return CacheConnectionException(message)

    @staticmethod
    def _is_transient(error: CacheException) -> bool:
        return isinstance(error, (CacheConnectionException, CacheTimeoutException))

    def execute_with_retry(self, operation: Callable[[], Any], operation_name: str,
                           context: Optional[str] = None):
        """Run a store operation, retrying transient failures with exponential backoff"""
        max_retries = getattr(settings, 'CACHE_MAX_RETRIES', 3)
        base_delay = getattr(settings, 'CACHE_RETRY_DELAY_MS', 100)
        last_error = None

        for attempt in range(max_retries + 1):
            try:
                if self.circuit_breaker is not None and not self.circuit_breaker.allows_request():
                    raise CacheConnectionException(
                        'Circuit breaker is open - cache operations are temporarily disabled'
                    )

                result = operation()

                if self.circuit_breaker is not None:
                    self.circuit_breaker.record_success()
                return result
            except Exception as e:
                last_error = e
                classified = self.classify_exception(e)

                if self.circuit_breaker is not None:
                    self.circuit_breaker.record_failure()

                if not self._is_transient(classified) or not self._is_retry_enabled():
                    raise classified from e

                if attempt >= max_retries:
                    break

                delay = base_delay * (2 ** attempt)
                logger.debug(
                    f"CacheService: retrying {operation_name} after transient error "
                    f"(attempt {attempt + 1}/{max_retries}, delay {delay}ms, context {context}): {classified}"
                )
                time.sleep(delay / 1000)

        raise self.classify_exception(last_error) from last_error

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def _tag_version_key(self, tag: str) -> str:
        return f"{TAG_VERSION_PREFIX}:{tag}"

    def _tag_versions(self, tags: list) -> list:
        keys = [self._tag_version_key(tag) for tag in tags]
        found = self.store.get_many(keys)
        versions = []
        for key in keys:
            version = found.get(key)
            if version is None:
                self.store.add(key, 1, None)
                version = self.store.get(key, 1)
            versions.append(version)
        return versions

    def tagged_key(self, key: str, tags: Tags = None) -> str:
        """Return the physical key for `key` under the current versions of `tags`"""
        tag_list = sorted(_normalize_tags(tags))
        if not tag_list:
            return key
        versions = self._tag_versions(tag_list)
        fingerprint = '|'.join(f"{tag}={version}" for tag, version in zip(tag_list, versions))
        digest = hashlib.sha1(fingerprint.encode('utf-8')).hexdigest()[:16]
        return f"{TAGGED_KEY_PREFIX}:{digest}:{key}"

    def _bump_tag(self, tag: str):
        key = self._tag_version_key(tag)
        try:
            self.store.incr(key)
        except ValueError:
            self.store.set(key, 2, None)

    # ------------------------------------------------------------------
    # Metrics helpers
    # ------------------------------------------------------------------

    def _record_lookup(self, operation, duration, hit, context):
        if not self._is_metrics_enabled() or self.metrics is None:
            return
        if hit:
            self.metrics.record_hit(operation, duration, context)
        else:
            self.metrics.record_miss(operation, duration, context)

    def _record_write(self, operation, duration, context):
        if self._is_metrics_enabled() and self.metrics is not None:
            self.metrics.record_write(operation, duration, context)

    def _record_delete(self, operation, duration, context):
        if self._is_metrics_enabled() and self.metrics is not None:
            self.metrics.record_delete(operation, duration, context)

    def _record_error(self, operation, error, context):
        if not self._is_metrics_enabled() or self.metrics is None:
            return
        try:
            self.metrics.record_error(operation, str(error), context)
        except Exception as e:
            logger.debug(f"CacheService: failed to record error metric: {e}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def remember(self, key: str, ttl: Optional[int], callback: Callable[[], Any],
                 tags: Tags = None, context: Optional[str] = None):
        """Return the cached value for key, computing and storing it on a miss"""
        return self._remember('remember', key, ttl, callback, tags, context)

    def remember_forever(self, key: str, callback: Callable[[], Any],
                         tags: Tags = None, context: Optional[str] = None):
        return self._remember('remember_forever', key, None, callback, tags, context)

    def _remember(self, operation_name, key, ttl, callback, tags, context):
        start = time.perf_counter()
        state = {'executed': False}

        def compute_and_store():
            physical_key = self.tagged_key(key, tags)
            value = self.store.get(physical_key, _MISSING)
            if value is not _MISSING:
                return value
            state['executed'] = True
            value = callback()
            self.store.set(physical_key, value, ttl)
            return value

        try:
            result = self.execute_with_retry(compute_and_store, operation_name, context)
            duration = _elapsed_ms(start)
            hit = not state['executed']
            self._record_lookup(operation_name, duration, hit, context)
            if not hit:
                self._record_write(operation_name, duration, context)
            return result
        except Exception as e:
            self._record_error(operation_name, e, context)
            logger.warning(
                f"CacheService: {operation_name} failed, executing callback directly | Context: "
                f"{{'key': '{key}', 'tags': {_normalize_tags(tags)}, 'error': '{e}', 'error_type': '{type(e).__name__}'}}"
            )
            return callback()

    def get(self, key: str, default=None, tags: Tags = None, context: Optional[str] = None):
        start = time.perf_counter()
        try:
            value = self.execute_with_retry(
                lambda: self.store.get(self.tagged_key(key, tags), _MISSING), 'get', context
            )
            hit = value is not _MISSING
            self._record_lookup('get', _elapsed_ms(start), hit, context)
            return value if hit else default
        except Exception as e:
            self._record_error('get', e, context)
            logger.warning(f"CacheService: get failed for key '{key}': {e}")
            return default

    def put(self, key: str, value, ttl: Optional[int] = None, tags: Tags = None,
            context: Optional[str] = None) -> bool:
        """Store a value; a ttl of None stores it without expiry"""
        start = time.perf_counter()
        try:
            self.execute_with_retry(
                lambda: self.store.set(self.tagged_key(key, tags), value, ttl), 'put', context
            )
            self._record_write('put', _elapsed_ms(start), context)
            return True
        except Exception as e:
            self._record_error('put', e, context)
            logger.warning(f"CacheService: put failed for key '{key}': {e}")
            return False

    def forget(self, key: str, tags: Tags = None, context: Optional[str] = None) -> bool:
        start = time.perf_counter()
        try:
            result = self.execute_with_retry(
                lambda: self.store.delete(self.tagged_key(key, tags)), 'forget', context
            )
            self._record_delete('forget', _elapsed_ms(start), context)
            return bool(result)
        except Exception as e:
            self._record_error('forget', e, context)
            logger.warning(f"CacheService: forget failed for key '{key}': {e}")
            return False

    def flush(self, tags: Tags = None, context: Optional[str] = None) -> bool:
        """Invalidate every entry stored under any of `tags`; no tags clears the store"""
        tag_list = _normalize_tags(tags)
        start = time.perf_counter()

        def do_flush():
            if not tag_list:
                self.store.clear()
                return True
            for tag in tag_list:
                self._bump_tag(tag)
            return True

        try:
            self.execute_with_retry(do_flush, 'flush', context)
            self._record_delete('flush', _elapsed_ms(start), context)
            return True
        except Exception as e:
            self._record_error('flush', e, context)
            logger.warning(f"CacheService: flush failed for tags {tag_list}: {e}")
            return False

    def clear_tag(self, tag: str, context: Optional[str] = None) -> bool:
        return self.flush(tag, context)

    def clear_tags(self, tags: Iterable[str], context: Optional[str] = None) -> bool:
        return self.flush(list(tags), context)


_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Return the process-wide CacheService"""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service
