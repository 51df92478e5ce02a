"""
Core views providing infrastructure endpoints.

Views here are not part of the billing domain; they exist so load
balancers and orchestrators can probe the service.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        return False
    return True


def _cache_ok() -> bool:
    try:
        cache.set("health_check", "ok", timeout=1)
        return cache.get("health_check") == "ok"
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        return False


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    The ledger is unusable without its database, so a failed database
    probe returns 503. A failed cache probe is reported but does not
    change the status code.

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected"
        }
    """
    database_ok = _database_ok()
    health_status = {
        "status": "healthy" if database_ok else "unhealthy",
        "database": "connected" if database_ok else "disconnected",
        "cache": "connected" if _cache_ok() else "disconnected",
    }
    return JsonResponse(health_status, status=200 if database_ok else 503)
