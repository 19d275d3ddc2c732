import logging

from django.db import DatabaseError, connection
from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

logger = logging.getLogger("storefront.health")


@extend_schema(
    tags=["Health Endpoint"],
    summary="Health check",
    responses={
        200: inline_serializer(name="Health", fields={"status": serializers.CharField()}),
        503: inline_serializer(name="HealthDegraded", fields={"status": serializers.CharField()}),
    },
)
@api_view(["GET"])
@permission_classes([AllowAny])
@throttle_classes([])
def health(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError as exc:
        logger.warning("health.database_unavailable", extra={"event": "health.database_unavailable", "error": str(exc)})
        return Response({"status": "unavailable", "database": "down"}, status=503)
    return Response({"status": "ok", "database": "ok"})
