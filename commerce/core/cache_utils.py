"""
Caching utilities for expensive report queries.

Keys are namespaced per prefix with a version counter, so a namespace can be
invalidated on any cache backend; with django-redis the stale keys are also
deleted by pattern.
"""
from django.conf import settings
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

REPORTS_NAMESPACE = 'reports'
STOREFRONT_NAMESPACE = 'storefront'


def reports_cache_ttl():
    return getattr(settings, 'REPORTS_CACHE_TTL', 600)


def _namespace_version(prefix):
    return cache.get(f"ns:{prefix}") or 1


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:v{_namespace_version(prefix)}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="reports")
        def revenue_dashboard(date_from, date_to):
            ...

    cache_ttl may be a callable so settings are read at call time.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(f"{key_prefix}", func.__name__, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)

            ttl = cache_ttl() if callable(cache_ttl) else cache_ttl
            cache.set(cache_key, result, ttl)
            return result
        wrapper.uncached = func
        return wrapper
    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate every cache key of a namespace.
    Bumping the version works everywhere; Redis additionally gets the old keys deleted.
    """
    version_key = f"ns:{pattern}"
    if cache.add(version_key, 2, None) is False:
        try:
            cache.incr(version_key)
        except ValueError:
            cache.set(version_key, 2, None)

    if 'django_redis' not in settings.CACHES['default']['BACKEND']:
        return
    try:
        deleted = cache.delete_pattern(f"{pattern}:*")
        logger.info(f"Invalidated {deleted} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def invalidate_reports_cache():
    """Invalidate cached analytics after order, payment or stock writes"""
    invalidate_cache_pattern(REPORTS_NAMESPACE)
    logger.debug("Invalidated reports cache")
