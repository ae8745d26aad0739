"""Project-level views for AULAS."""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)

HEALTH_CACHE_KEY = "aulas:health"


def ratelimited_view(request, exception=None):
    """Rate-limited API calls get a JSON 429 with ``Retry-After``."""
    response = JsonResponse(
        {"detail": "Too many requests. Try again in a minute."},
        status=429,
    )
    response["Retry-After"] = "60"
    return response


def _database_ready() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        logger.exception("Health check: database unavailable")
        return False
    return True


def _cache_ready() -> bool:
    try:
        cache.set(HEALTH_CACHE_KEY, "ok", timeout=10)
        return cache.get(HEALTH_CACHE_KEY) == "ok"
    except Exception:
        # Backend-specific connection errors (redis, memcached...)
        logger.exception("Health check: cache unavailable")
        return False


def health_check(request):
    """Liveness probe; only a dead database makes it fail."""
    db_ok = _database_ready()
    cache_ok = _cache_ready()
    return JsonResponse(
        {
            "status": "ok" if db_ok and cache_ok else "degraded",
            "db": db_ok,
            "cache": cache_ok,
        },
        status=200 if db_ok else 503,
    )
