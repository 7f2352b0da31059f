"""
Infrastructure views and response helpers shared by the API apps.

health_check is mounted at /health/ for container and load balancer probes.
failure_response renders a failed ServiceResult with the HTTP status mapped
from its error_code.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response

if TYPE_CHECKING:
    from collections.abc import Mapping

    from core.services import ServiceResult

logger = logging.getLogger(__name__)


def failure_response(
    result: ServiceResult,
    status_by_code: Mapping[str, int],
    default_status: int = status.HTTP_400_BAD_REQUEST,
) -> Response:
    """
    Build the error Response for a failed service result.

    Args:
        result: Failed ServiceResult
        status_by_code: error_code -> HTTP status for the calling view
        default_status: Status for codes not present in the mapping
    """
    return Response(
        result.to_response(),
        status=status_by_code.get(result.error_code, default_status),
    )


def health_check(request):
    """
    Report database and cache connectivity.

    Returns:
        200 {"status": "healthy", "database": "connected", "cache": ...}
        503 when the database is unreachable. Cache problems only degrade.
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
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    cache.set("health_check", "ok", timeout=1)
    if cache.get("health_check") == "ok":
        health_status["cache"] = "connected"
    else:
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
