"""
Directory API views.

All mutations flow through service layer.
Businesses and contractors are administered by ADMIN; contracts by the
owning BUSINESS. Tenant ownership is decided by core.guard.
"""

from django.db import IntegrityError
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response

from core.exceptions import DomainError, NotFoundError
from core.guard import Actor, Operation, Resource, grant, grant_for
from core.permissions import HasRole, IsAdmin, IsBusiness, IsBusinessOrAdmin
from apps.directory import services
from apps.directory.models import Business, Contract, Contractor
from apps.directory.serializers import (
    BusinessCreateSerializer,
    BusinessSerializer,
    BusinessUpdateSerializer,
    ContractCreateSerializer,
    ContractSerializer,
    ContractorCreateSerializer,
    ContractorSerializer,
    ContractorUpdateSerializer,
)


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


def _paginate(request, queryset, serializer_class):
    paginator = LimitOffsetPagination()
    paginator.default_limit = 50
    paginator.max_limit = 100
    page = paginator.paginate_queryset(queryset, request)
    return paginator.get_paginated_response(serializer_class(page, many=True).data)


def _administer(request):
    return grant(
        Actor.from_user(request.user), Operation.ADMINISTER, Resource("Directory", None)
    )


def _get_or_404(model, pk):
    instance = model.objects.filter(id=pk).first()
    if instance is None:
        raise NotFoundError(f"{model.__name__} {pk} does not exist")
    return instance


# -----------------------------
# Businesses
# -----------------------------


@api_view(["GET", "POST"])
def list_or_create_businesses(request):
    """
    GET /api/v1/directory/businesses - ADMIN: all, BUSINESS: its own
    POST /api/v1/directory/businesses - Create business (ADMIN only)
    """
    if request.method == "GET":
        if not IsBusinessOrAdmin().has_permission(request, None):
            return _forbidden()
        queryset = Business.objects.all().order_by("display_name")
        if request.user.role == "BUSINESS":
            queryset = queryset.filter(id=request.user.business_id)
        return _paginate(request, queryset, BusinessSerializer)

    if not IsAdmin().has_permission(request, None):
        return _forbidden("Only ADMIN can create businesses")

    serializer = BusinessCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        business = services.create_business(_administer(request), **serializer.validated_data)
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Business creation conflict")
    return Response(
        {"data": BusinessSerializer(business).data}, status=status.HTTP_201_CREATED
    )


@api_view(["GET", "PATCH"])
def get_or_update_business(request, businessId):
    """
    GET /api/v1/directory/businesses/{businessId}
    PATCH /api/v1/directory/businesses/{businessId} - ADMIN only
    """
    if not HasRole().has_permission(request, None):
        return _forbidden()
    actor = Actor.from_user(request.user)

    if request.method == "GET":
        business = _get_or_404(Business, businessId)
        grant(actor, Operation.READ, Resource.of(business))
        return Response(
            {"data": BusinessSerializer(business).data}, status=status.HTTP_200_OK
        )

    serializer = BusinessUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = grant_for(actor, Operation.ADMINISTER, Business, businessId)
    business = services.update_business(
        capability, businessId, **serializer.validated_data
    )
    return Response({"data": BusinessSerializer(business).data}, status=status.HTTP_200_OK)


# -----------------------------
# Contractors
# -----------------------------


@api_view(["GET", "POST"])
def list_or_create_contractors(request):
    """
    GET /api/v1/directory/contractors - ADMIN: all, BUSINESS: active, CONTRACTOR: self
    POST /api/v1/directory/contractors - Create contractor (ADMIN only)
    """
    if request.method == "GET":
        if not HasRole().has_permission(request, None):
            return _forbidden()
        queryset = Contractor.objects.all().order_by("display_name")
        if request.user.role == "BUSINESS":
            queryset = queryset.filter(is_active=True)
        elif request.user.role == "CONTRACTOR":
            queryset = queryset.filter(id=request.user.contractor_id)
        return _paginate(request, queryset, ContractorSerializer)

    if not IsAdmin().has_permission(request, None):
        return _forbidden("Only ADMIN can create contractors")

    serializer = ContractorCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        contractor = services.create_contractor(
            _administer(request), **serializer.validated_data
        )
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Connected account is already linked to another contractor")
    return Response(
        {"data": ContractorSerializer(contractor).data}, status=status.HTTP_201_CREATED
    )


@api_view(["GET", "PATCH"])
def get_or_update_contractor(request, contractorId):
    """
    GET /api/v1/directory/contractors/{contractorId} - ADMIN or the contractor
    PATCH /api/v1/directory/contractors/{contractorId} - ADMIN only (payout onboarding)
    """
    if not HasRole().has_permission(request, None):
        return _forbidden()
    actor = Actor.from_user(request.user)

    if request.method == "GET":
        contractor = _get_or_404(Contractor, contractorId)
        grant(actor, Operation.READ, Resource.of(contractor))
        return Response(
            {"data": ContractorSerializer(contractor).data}, status=status.HTTP_200_OK
        )

    serializer = ContractorUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    capability = grant_for(actor, Operation.ADMINISTER, Contractor, contractorId)
    try:
        contractor = services.update_contractor(
            capability, contractorId, **serializer.validated_data
        )
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Connected account is already linked to another contractor")
    return Response(
        {"data": ContractorSerializer(contractor).data}, status=status.HTTP_200_OK
    )


# -----------------------------
# Contracts
# -----------------------------


@api_view(["GET", "POST"])
def list_or_create_contracts(request):
    """
    GET /api/v1/directory/contracts - contracts visible to the caller
    POST /api/v1/directory/contracts - Create contract for own business (BUSINESS)
    """
    if request.method == "GET":
        if not HasRole().has_permission(request, None):
            return _forbidden()
        queryset = Contract.objects.all().order_by("-created_at")
        if request.user.role == "BUSINESS":
            queryset = queryset.filter(business_id=request.user.business_id)
        elif request.user.role == "CONTRACTOR":
            queryset = queryset.filter(contractor_id=request.user.contractor_id)

        status_filter = request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return _paginate(request, queryset, ContractSerializer)

    if not IsBusiness().has_permission(request, None):
        return _forbidden("Only BUSINESS users can create contracts")

    serializer = ContractCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    actor = Actor.from_user(request.user)
    capability = grant_for(actor, Operation.CREATE, Business, actor.business_id)
    try:
        contract = services.create_contract(
            capability, actor.business_id, **serializer.validated_data
        )
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Contract code already exists")
    return Response(
        {"data": ContractSerializer(contract).data}, status=status.HTTP_201_CREATED
    )


@api_view(["GET"])
@permission_classes([HasRole])
def get_contract(request, contractId):
    """GET /api/v1/directory/contracts/{contractId}"""
    contract = _get_or_404(Contract, contractId)
    grant(Actor.from_user(request.user), Operation.READ, Resource.of(contract))
    return Response({"data": ContractSerializer(contract).data}, status=status.HTTP_200_OK)


CONTRACT_ACTIONS = {
    "activate": services.activate_contract,
    "complete": services.complete_contract,
    "terminate": services.terminate_contract,
}


@api_view(["POST"])
@permission_classes([IsBusiness])
def transition_contract(request, contractId, action):
    """POST /api/v1/directory/contracts/{contractId}/{activate|complete|terminate}"""
    service = CONTRACT_ACTIONS.get(action)
    if service is None:
        raise NotFoundError(f"Unknown contract action '{action}'")

    capability = grant_for(
        Actor.from_user(request.user), Operation.UPDATE, Contract, contractId
    )
    try:
        contract = service(capability, contractId)
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Contract state conflict")
    return Response({"data": ContractSerializer(contract).data}, status=status.HTTP_200_OK)
