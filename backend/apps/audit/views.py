"""
Audit log views - query audit log entries.

Read-only - audit logs are append-only.
ADMIN sees every entry; BUSINESS sees entries attributed to its business.
"""

from uuid import UUID

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.pagination import LimitOffsetPagination
from django.utils.dateparse import parse_datetime
from core.permissions import IsBusinessOrAdmin
from apps.audit.models import AuditLog, ENTITY_TYPES
from apps.audit.serializers import AuditLogSerializer


def _validation_error(message):
    return Response(
        {
            "error": {
                "code": "VALIDATION_ERROR",
                "message": message,
                "details": {},
            }
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


@api_view(["GET"])
@permission_classes([IsBusinessOrAdmin])
def query_audit_log(request):
    """
    GET /api/v1/audit

    Query audit log entries with optional filters.
    """
    entity_type = request.query_params.get("entityType")
    entity_id = request.query_params.get("entityId")
    actor_id = request.query_params.get("actorId")
    from_date = request.query_params.get("fromDate")
    to_date = request.query_params.get("toDate")

    queryset = AuditLog.objects.all()

    if request.user.role == "BUSINESS":
        queryset = queryset.filter(business_id=request.user.business_id)

    if entity_type:
        if entity_type not in ENTITY_TYPES:
            return _validation_error("Invalid entityType")
        queryset = queryset.filter(entity_type=entity_type)

    if entity_id:
        try:
            queryset = queryset.filter(entity_id=UUID(entity_id))
        except ValueError:
            return _validation_error("Invalid entityId format")

    if actor_id:
        try:
            queryset = queryset.filter(actor_id=UUID(actor_id))
        except ValueError:
            return _validation_error("Invalid actorId format")

    if from_date:
        from_dt = parse_datetime(from_date)
        if not from_dt:
            return _validation_error("Invalid fromDate format (use ISO 8601)")
        queryset = queryset.filter(occurred_at__gte=from_dt)

    if to_date:
        to_dt = parse_datetime(to_date)
        if not to_dt:
            return _validation_error("Invalid toDate format (use ISO 8601)")
        queryset = queryset.filter(occurred_at__lte=to_dt)

    queryset = queryset.order_by("-occurred_at")

    paginator = LimitOffsetPagination()
    paginator.default_limit = 50
    paginator.max_limit = 100

    page = paginator.paginate_queryset(queryset, request)
    serializer = AuditLogSerializer(page, many=True)

    return paginator.get_paginated_response(serializer.data)
