"""
Views for the Core app.
"""

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger('core')


def health_check(request):
    """
    Health check endpoint to verify the application is running.
    Returns JSON with system status.
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        db_status = "healthy"
    except DatabaseError as e:
        logger.error(f"Health check database error: {e}")
        db_status = f"error: {e}"

    from .providers import BundleProviderService
    from .paystack import get_paystack_service

    return JsonResponse({
        "status": "ok" if db_status == "healthy" else "degraded",
        "service": "Resellers Hub",
        "version": "1.0.0",
        "database": db_status,
        "integrations": {
            "paystack": get_paystack_service().is_configured,
            "provider": BundleProviderService().is_configured,
        }
    }, status=200 if db_status == "healthy" else 503)
