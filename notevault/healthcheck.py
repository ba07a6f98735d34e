# notevault/healthcheck.py
import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthcheck(request):
    try:
        connection.ensure_connection()
    except DatabaseError as e:
        logger.error("Healthcheck database error: %s", e, extra={"event": "healthcheck_failed"})
        return JsonResponse({"status": "error", "service": "notevault-api", "database": "down"}, status=503)

    return JsonResponse({"status": "ok", "service": "notevault-api", "database": "ok"}, status=200)
