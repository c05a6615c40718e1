"""
Ledger API views.

Read-only payment queries and aggregates, plus the business's budget
settings. Every figure comes from apps.ledger.selectors; tenant scope is
decided by core.guard, never by trusting query parameters.
"""

import uuid
from datetime import date

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response

from core.exceptions import NotFoundError, ValidationError
from core.guard import Actor, Operation, Resource, grant, grant_for
from core.permissions import HasRole, IsBusiness, IsBusinessOrAdmin
from apps.directory import services as directory_services
from apps.directory.models import Business
from apps.directory.serializers import BudgetUpdateSerializer
from apps.ledger import selectors
from apps.ledger.serializers import (
    BudgetSummarySerializer,
    BusinessSummarySerializer,
    ContractorSummarySerializer,
    MonthlyTotalSerializer,
)
from apps.payments.models import Payment, PaymentStatus
from apps.payments.serializers import PaymentSerializer


def _parse_date(value, field):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", {"field": field})


def _parse_int(value, field, low, high):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", {"field": field})
    if not low <= number <= high:
        raise ValidationError(f"{field} must be between {low} and {high}", {"field": field})
    return number


def period_from_params(params):
    """
    ?from=&to= (inclusive dates), or ?year= with optional ?month=.
    No period parameters means all time.
    """
    start, end = params.get("from"), params.get("to")
    if start or end:
        start = _parse_date(start, "from") if start else None
        end = _parse_date(end, "to") if end else None
        if start and end and end < start:
            raise ValidationError("to must not be before from", {"field": "to"})
        return selectors.Period.between(start, end)

    year = params.get("year")
    if year:
        year = _parse_int(year, "year", 1900, 9999)
        month = params.get("month")
        if month:
            return selectors.Period.month(year, _parse_int(month, "month", 1, 12))
        return selectors.Period.year(year)

    return selectors.ALL_TIME


def _parse_uuid(value, field):
    if value is None:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be a UUID", {"field": field})


def _business_scope(request, actor):
    """Business id the caller may read: their own, or ?businessId= for ADMIN."""
    business_id = _parse_uuid(
        request.query_params.get("businessId") or actor.business_id, "businessId"
    )
    if not business_id:
        raise ValidationError("businessId is required", {"field": "businessId"})
    grant(
        actor,
        Operation.READ,
        Resource("Business", business_id, business_id=business_id),
    )
    return business_id


def _contractor_scope(request, actor):
    contractor_id = _parse_uuid(
        request.query_params.get("contractorId") or actor.contractor_id, "contractorId"
    )
    grant(
        actor,
        Operation.READ,
        Resource("Contractor", contractor_id, contractor_id=contractor_id),
    )
    return contractor_id


def _wants_contractor_view(request, actor):
    return actor.role == "CONTRACTOR" or (
        actor.role == "ADMIN" and request.query_params.get("contractorId")
    )


# -----------------------------
# Payments
# -----------------------------


@api_view(["GET"])
@permission_classes([HasRole])
def list_payments(request):
    """
    GET /api/v1/payments

    BUSINESS: payments of its business (?businessId= must be its own).
    CONTRACTOR: payments it received (?contractorId= must be its own).
    ADMIN: ?businessId= or ?contractorId=, or everything.
    Optional ?status=, ?linkage=, and a period (?from=&to= or ?year=&month=).
    """
    actor = Actor.from_user(request.user)
    status_filter = request.query_params.get("status")
    if status_filter and status_filter not in PaymentStatus.values:
        raise ValidationError(
            "Invalid status", {"allowed": list(PaymentStatus.values)}
        )

    params = request.query_params
    has_period = any(params.get(key) for key in ("from", "to", "year"))
    period = period_from_params(params) if has_period else None

    if _wants_contractor_view(request, actor):
        queryset = selectors.payments_for_contractor(
            _contractor_scope(request, actor), status_filter, period
        )
    elif actor.role == "ADMIN" and not params.get("businessId"):
        queryset = Payment.objects.all().order_by("-created_at")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        if period is not None:
            queryset = queryset.filter(period.q("scheduled_date"))
    else:
        queryset = selectors.payments_for(
            _business_scope(request, actor), status_filter, period
        )
        contractor_filter = _parse_uuid(params.get("contractorId"), "contractorId")
        if contractor_filter:
            queryset = queryset.filter(contractor_id=contractor_filter)

    linkage = params.get("linkage")
    if linkage:
        queryset = queryset.filter(linkage_kind=linkage)

    paginator = LimitOffsetPagination()
    paginator.default_limit = 50
    paginator.max_limit = 100
    page = paginator.paginate_queryset(queryset, request)
    serializer = PaymentSerializer(page, many=True)
    return paginator.get_paginated_response(serializer.data)


@api_view(["GET"])
@permission_classes([HasRole])
def get_payment(request, paymentId):
    """GET /api/v1/payments/{paymentId}"""
    payment = Payment.objects.filter(id=paymentId).first()
    if payment is None:
        raise NotFoundError(f"Payment {paymentId} does not exist")
    grant(Actor.from_user(request.user), Operation.READ, Resource.of(payment))
    return Response({"data": PaymentSerializer(payment).data}, status=status.HTTP_200_OK)


# -----------------------------
# Aggregates
# -----------------------------


@api_view(["GET"])
@permission_classes([HasRole])
def ledger_summary(request):
    """
    GET /api/v1/ledger/summary

    Business: total paid and pending. Contractor: total earned and pending.
    """
    actor = Actor.from_user(request.user)
    period = period_from_params(request.query_params)

    if _wants_contractor_view(request, actor):
        summary = selectors.contractor_summary(_contractor_scope(request, actor), period)
        data = ContractorSummarySerializer(summary).data
    else:
        summary = selectors.business_summary(_business_scope(request, actor), period)
        data = BusinessSummarySerializer(summary).data
    return Response({"data": data}, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([IsBusinessOrAdmin])
def ledger_monthly(request):
    """GET /api/v1/ledger/monthly?year=YYYY - completed totals per month"""
    actor = Actor.from_user(request.user)
    business_id = _business_scope(request, actor)
    year = request.query_params.get("year")
    year = _parse_int(year, "year", 1900, 9999) if year else date.today().year

    rows = selectors.monthly_totals(business_id, year)
    return Response(
        {
            "data": {
                "businessId": str(business_id),
                "year": year,
                "months": MonthlyTotalSerializer(rows, many=True).data,
            }
        },
        status=status.HTTP_200_OK,
    )


@api_view(["GET", "PUT"])
def ledger_budget(request):
    """
    GET /api/v1/ledger/budget - budget cap, usage and remaining (BUSINESS, ADMIN)
    PUT /api/v1/ledger/budget - change own budget settings (BUSINESS only)
    """
    if request.method == "GET":
        if not IsBusinessOrAdmin().has_permission(request, None):
            return Response(
                {
                    "error": {
                        "code": "FORBIDDEN",
                        "message": "You do not have permission to perform this action",
                        "details": {},
                    }
                },
                status=status.HTTP_403_FORBIDDEN,
            )
        actor = Actor.from_user(request.user)
        business = Business.objects.filter(id=_business_scope(request, actor)).first()
        if business is None:
            raise NotFoundError("Business does not exist")
        summary = selectors.budget_summary(business)
        return Response(
            {"data": BudgetSummarySerializer(summary).data}, status=status.HTTP_200_OK
        )

    if not IsBusiness().has_permission(request, None):
        return Response(
            {
                "error": {
                    "code": "FORBIDDEN",
                    "message": "Only BUSINESS users can change their budget",
                    "details": {},
                }
            },
            status=status.HTTP_403_FORBIDDEN,
        )

    serializer = BudgetUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    actor = Actor.from_user(request.user)
    capability = grant_for(actor, Operation.UPDATE, Business, actor.business_id)
    business = directory_services.update_budget(
        capability, actor.business_id, **serializer.validated_data
    )
    summary = selectors.budget_summary(business)
    return Response(
        {"data": BudgetSummarySerializer(summary).data}, status=status.HTTP_200_OK
    )
