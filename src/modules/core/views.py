import time
from typing import Any, Dict

import structlog
from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

logger = structlog.get_logger(__name__)

CACHE_PROBE_KEY = "_health_check"


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)


def _check_database() -> Dict[str, Any]:
    start = time.monotonic()
    try:
        conn = connections["default"]
        conn.ensure_connection()
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("health.database_down")
        return {"status": "down"}
    return {"status": "up", "response_time_ms": _elapsed_ms(start)}


def _check_cache() -> Dict[str, Any]:
    start = time.monotonic()
    try:
        cache.set(CACHE_PROBE_KEY, "ok", 10)
        healthy = cache.get(CACHE_PROBE_KEY) == "ok"
    except Exception:
        # Backend-specific (redis, socket) errors all mean "down" here.
        logger.exception("health.cache_down")
        return {"status": "down"}
    if not healthy:
        logger.error("health.cache_read_mismatch")
        return {"status": "down"}
    return {"status": "up", "response_time_ms": _elapsed_ms(start)}


def health_check(request: HttpRequest) -> JsonResponse:
    """GET /health: database and cache reachability, 200 or 503."""
    services = {"database": _check_database(), "cache": _check_cache()}
    healthy = all(service["status"] == "up" for service in services.values())
    overall = "healthy" if healthy else "unhealthy"

    logger.info("health.checked", status=overall)
    return JsonResponse(
        {
            "status": overall,
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if healthy else 503,
    )
