"""
Work item API views.

All mutations flow through service layer.
Every endpoint resolves an Actor from the authenticated user and asks
core.guard for a Capability before calling a service.
"""

import logging

from django.db import IntegrityError
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response

from core.exceptions import DomainError, NotFoundError
from core.guard import Actor, Operation, Resource, grant, grant_for
from core.permissions import HasRole, IsBusiness, IsContractor
from apps.directory.models import Business
from apps.payments.models import PaymentStatus
from apps.payments.serializers import PaymentSerializer
from apps.work import artifacts, services
from apps.work.models import WorkItem, WorkItemStatus
from apps.work.serializers import (
    AssignSerializer,
    ReasonSerializer,
    ReviewSerializer,
    SubmissionSerializer,
    SubmitWorkSerializer,
    WorkItemCreateSerializer,
    WorkItemListSerializer,
    WorkItemSerializer,
    WorkItemUpdateSerializer,
)

logger = logging.getLogger(__name__)


def _forbidden(message="You do not have permission to perform this action"):
    return Response(
        {"error": {"code": "FORBIDDEN", "message": message, "details": {}}},
        status=status.HTTP_403_FORBIDDEN,
    )


def _conflict(message):
    return Response(
        {"error": {"code": "CONFLICT", "message": message, "details": {}}},
        status=status.HTTP_409_CONFLICT,
    )


def _get_item(work_item_id):
    item = WorkItem.objects.filter(id=work_item_id).first()
    if item is None:
        raise NotFoundError(f"WorkItem {work_item_id} does not exist")
    return item


def _capability(request, operation, work_item_id):
    return grant_for(Actor.from_user(request.user), operation, WorkItem, work_item_id)


def _item_response(item, http_status=status.HTTP_200_OK):
    item = WorkItem.objects.prefetch_related("submissions").get(id=item.id)
    return Response({"data": WorkItemSerializer(item).data}, status=http_status)


# -----------------------------
# Collection and detail
# -----------------------------


@api_view(["GET", "POST"])
def list_or_create_work_items(request):
    """
    GET /api/v1/work-items - BUSINESS: own business, CONTRACTOR: targeted or assigned
    POST /api/v1/work-items - Create work item (BUSINESS only)
    """
    if request.method == "GET":
        if not HasRole().has_permission(request, None):
            return _forbidden()

        queryset = WorkItem.objects.all().order_by("-created_at")
        if request.user.role == "BUSINESS":
            queryset = queryset.filter(business_id=request.user.business_id)
        elif request.user.role == "CONTRACTOR":
            queryset = queryset.filter(contractor_id=request.user.contractor_id).exclude(
                status=WorkItemStatus.DRAFT
            )

        status_filter = request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        contract_filter = request.query_params.get("contractId")
        if contract_filter:
            queryset = queryset.filter(contract_id=contract_filter)

        paginator = LimitOffsetPagination()
        paginator.default_limit = 50
        paginator.max_limit = 100
        page = paginator.paginate_queryset(queryset, request)
        serializer = WorkItemListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    if not IsBusiness().has_permission(request, None):
        return _forbidden("Only BUSINESS users can create work items")

    serializer = WorkItemCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    actor = Actor.from_user(request.user)
    capability = grant_for(actor, Operation.CREATE, Business, actor.business_id)
    try:
        item, replayed = services.create_work_item(
            capability,
            actor.business_id,
            idempotency_key=getattr(request, "idempotency_key", None),
            **serializer.validated_data,
        )
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Work item creation conflict (idempotency or duplicate)")

    return _item_response(
        item, status.HTTP_200_OK if replayed else status.HTTP_201_CREATED
    )


@api_view(["GET", "PATCH"])
def get_or_update_work_item(request, workItemId):
    """
    GET /api/v1/work-items/{workItemId}
    PATCH /api/v1/work-items/{workItemId} - Edit DRAFT/OPEN work (BUSINESS only)
    """
    if request.method == "GET":
        if not HasRole().has_permission(request, None):
            return _forbidden()
        item = _get_item(workItemId)
        grant(Actor.from_user(request.user), Operation.READ, Resource.of(item))
        return _item_response(item)

    if not IsBusiness().has_permission(request, None):
        return _forbidden("Only BUSINESS users can edit work items")

    serializer = WorkItemUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = _capability(request, Operation.UPDATE, workItemId)
    item = services.update_work_item(
        capability, workItemId, **serializer.validated_data
    )
    return _item_response(item)


# -----------------------------
# Business transitions
# -----------------------------


@api_view(["POST"])
@permission_classes([IsBusiness])
def publish_work_item(request, workItemId):
    """POST /api/v1/work-items/{workItemId}/publish"""
    capability = _capability(request, Operation.UPDATE, workItemId)
    item = services.publish_work_item(capability, workItemId)
    return _item_response(item)


@api_view(["POST"])
@permission_classes([IsBusiness])
def assign_work_item(request, workItemId):
    """POST /api/v1/work-items/{workItemId}/assign"""
    serializer = AssignSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = _capability(request, Operation.ASSIGN, workItemId)
    item = services.assign_work_item(
        capability, workItemId, serializer.validated_data["contractor_id"]
    )
    return _item_response(item)


@api_view(["POST"])
@permission_classes([IsBusiness])
def cancel_work_item(request, workItemId):
    """POST /api/v1/work-items/{workItemId}/cancel"""
    serializer = ReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = _capability(request, Operation.CANCEL, workItemId)
    item = services.cancel_work_item(
        capability, workItemId, serializer.validated_data.get("reason")
    )
    return _item_response(item)


@api_view(["POST"])
@permission_classes([IsBusiness])
def approve_work_item(request, workItemId):
    """
    POST /api/v1/work-items/{workItemId}/approve

    200 when the payment has settled, 202 while the transfer is in flight.
    Approving again returns the same payment.
    """
    serializer = ReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = _capability(request, Operation.APPROVE, workItemId)

    try:
        item, payment, replayed = services.approve_work_item(
            capability, workItemId, serializer.validated_data.get("review_notes")
        )
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Approval conflict (duplicate approval)")

    item = WorkItem.objects.prefetch_related("submissions").get(id=item.id)
    settled = payment.status == PaymentStatus.COMPLETED
    return Response(
        {
            "data": {
                "workItem": WorkItemSerializer(item).data,
                "payment": PaymentSerializer(payment).data,
                "replayed": replayed,
            }
        },
        status=status.HTTP_200_OK if settled else status.HTTP_202_ACCEPTED,
    )


@api_view(["POST"])
@permission_classes([IsBusiness])
def reject_work_item(request, workItemId):
    """POST /api/v1/work-items/{workItemId}/reject"""
    serializer = ReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = _capability(request, Operation.REJECT, workItemId)
    item = services.reject_work_item(
        capability, workItemId, serializer.validated_data.get("review_notes")
    )
    return _item_response(item)


# -----------------------------
# Contractor transitions
# -----------------------------


@api_view(["POST"])
@permission_classes([IsContractor])
def accept_work_item(request, workItemId):
    """POST /api/v1/work-items/{workItemId}/accept"""
    capability = _capability(request, Operation.ACCEPT, workItemId)
    item = services.accept_work_item(capability, workItemId)
    return _item_response(item)


@api_view(["POST"])
@permission_classes([IsContractor])
def decline_work_item(request, workItemId):
    """POST /api/v1/work-items/{workItemId}/decline"""
    serializer = ReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = _capability(request, Operation.DECLINE, workItemId)
    item = services.decline_work_item(
        capability, workItemId, serializer.validated_data.get("reason")
    )
    return _item_response(item)


@api_view(["GET", "POST"])
def list_or_create_submissions(request, workItemId):
    """
    GET /api/v1/work-items/{workItemId}/submissions - Submission history
    POST /api/v1/work-items/{workItemId}/submissions - Submit work (CONTRACTOR only)
    """
    if request.method == "GET":
        if not HasRole().has_permission(request, None):
            return _forbidden()
        item = _get_item(workItemId)
        grant(Actor.from_user(request.user), Operation.READ, Resource.of(item))
        serializer = SubmissionSerializer(item.submissions.all(), many=True)
        return Response({"data": serializer.data}, status=status.HTTP_200_OK)

    if not IsContractor().has_permission(request, None):
        return _forbidden("Only CONTRACTOR users can submit work")

    serializer = SubmitWorkSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = _capability(request, Operation.SUBMIT, workItemId)

    try:
        submission = services.submit_work(
            capability,
            workItemId,
            serializer.validated_data["artifacts"],
            serializer.validated_data.get("notes", ""),
        )
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Submission conflict (concurrent submission)")

    return Response(
        {"data": SubmissionSerializer(submission).data}, status=status.HTTP_201_CREATED
    )


@api_view(["GET", "POST"])
def upload_or_download_artifact(request, workItemId):
    """
    POST /api/v1/work-items/{workItemId}/artifacts - Upload a file (CONTRACTOR only)
    GET /api/v1/work-items/{workItemId}/artifacts?ref=... - Download a file
    """
    if request.method == "POST":
        if not IsContractor().has_permission(request, None):
            return _forbidden("Only CONTRACTOR users can upload artifacts")

        if "file" not in request.FILES:
            return Response(
                {
                    "error": {
                        "code": "VALIDATION_ERROR",
                        "message": "File is required",
                        "details": {},
                    }
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        capability = _capability(request, Operation.SUBMIT, workItemId)
        ref = services.upload_artifact(capability, workItemId, request.FILES["file"])
        return Response({"data": {"ref": ref}}, status=status.HTTP_201_CREATED)

    if not HasRole().has_permission(request, None):
        return _forbidden()
    item = _get_item(workItemId)
    grant(Actor.from_user(request.user), Operation.READ, Resource.of(item))

    ref = request.query_params.get("ref", "")
    file = artifacts.open_artifact(item.id, ref)
    return FileResponse(file, as_attachment=True, filename=ref.rsplit("/", 1)[-1])
