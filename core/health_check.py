# core/health_check.py
import logging

from django.db import connection, DatabaseError
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

logger = logging.getLogger(__name__)


@require_http_methods(["GET", "HEAD"])
def health_check(request):
    """
    Lightweight health check endpoint for uptime monitoring.
    Returns 200 OK when the app and its database are reachable.
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
    except DatabaseError as e:
        logger.error(f"Health check failed: {str(e)}")
        return JsonResponse(
            {
                'status': 'error',
                'message': 'Database unavailable'
            },
            status=500
        )

    return JsonResponse(
        {
            'status': 'ok',
            'message': 'Vet clinic back office is running'
        },
        status=200
    )
