"""
Core views providing infrastructure endpoints and the result-to-HTTP boundary.

- health_check: liveness/readiness probe
- service_response: the single place where a ServiceResult becomes a
  DRF Response, so error kinds are mapped to status codes once
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from core.services import ServiceResult

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    HTTP Status Codes:
        200: All systems operational
        503: Database unreachable

    Example Response:
        {"status": "healthy", "database": "connected", "cache": "connected"}
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check database probe failed")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        # Cache failure degrades but does not fail the probe
        logger.warning("Health check cache probe failed", exc_info=True)
        health_status["cache"] = "disconnected"

    status_code = 200 if is_healthy else 503
    return JsonResponse(health_status, status=status_code)


def service_response(
    result: ServiceResult,
    serializer: Callable[[Any], Any] | None = None,
    success_status: int = status.HTTP_200_OK,
) -> Response:
    """
    Convert a ServiceResult into a DRF Response.

    Args:
        result: The service outcome
        serializer: Optional callable turning result.data into primitives
        success_status: Status used when the result succeeded

    Returns:
        Response with the serialized data, or the error payload with the
        status carried by the result (400 when none was set)
    """
    if result.success:
        data = serializer(result.data) if serializer else result.data
        return Response(data, status=success_status)

    return Response(
        result.to_response(),
        status=result.http_status or status.HTTP_400_BAD_REQUEST,
    )
