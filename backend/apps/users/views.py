"""
User views: current user, user detail, list users, create users.

User creation requires ADMIN role.
"""

from django.db import IntegrityError
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.pagination import LimitOffsetPagination
from core.exceptions import NotFoundError
from core.permissions import IsAuthenticatedReadOnly, IsAdmin
from apps.directory.models import Business, Contractor
from apps.users.models import User
from apps.users.serializers import (
    UserSerializer,
    UserListSerializer,
    UserCreateSerializer,
)


@api_view(["GET"])
@permission_classes([IsAuthenticatedReadOnly])
def get_current_user(request):
    """
    GET /api/v1/users/me

    Get current authenticated user.
    """
    serializer = UserSerializer(request.user)
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)


@api_view(["GET", "POST"])
def list_or_create_users(request):
    """
    GET /api/v1/users - List users (ADMIN sees all, BUSINESS sees its own team).
    POST /api/v1/users - Create a new user (ADMIN only).
    """
    if request.method == "GET":
        if not IsAuthenticatedReadOnly().has_permission(request, None):
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

        paginator = LimitOffsetPagination()
        paginator.default_limit = 50
        paginator.max_limit = 100

        users = User.objects.all().order_by("username")
        if request.user.role == "BUSINESS":
            users = users.filter(business_id=request.user.business_id)
        elif request.user.role == "CONTRACTOR":
            users = users.filter(id=request.user.id)
        page = paginator.paginate_queryset(users, request)

        serializer = UserListSerializer(page, many=True)

        return paginator.get_paginated_response(serializer.data)

    else:  # POST
        if not IsAdmin().has_permission(request, None):
            return Response(
                {
                    "error": {
                        "code": "FORBIDDEN",
                        "message": "Only ADMIN can create users",
                        "details": {},
                    }
                },
                status=status.HTTP_403_FORBIDDEN,
            )

        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        username = serializer.validated_data["username"]
        password = serializer.validated_data["password"]
        display_name = serializer.validated_data.get("display_name") or username
        role = serializer.validated_data["role"]
        tenant = {}
        business_id = serializer.validated_data.get("business_id")
        contractor_id = serializer.validated_data.get("contractor_id")
        if role == "BUSINESS":
            if not Business.objects.filter(id=business_id).exists():
                raise NotFoundError(f"Business {business_id} does not exist")
            tenant["business_id"] = business_id
        if role == "CONTRACTOR":
            if not Contractor.objects.filter(id=contractor_id).exists():
                raise NotFoundError(f"Contractor {contractor_id} does not exist")
            tenant["contractor_id"] = contractor_id

        try:
            user = User.objects.create_user(
                username=username,
                password=password,
                display_name=display_name,
                role=role,
                **tenant,
            )
            response_serializer = UserSerializer(user)
            return Response(
                {"data": response_serializer.data}, status=status.HTTP_201_CREATED
            )
        except IntegrityError:
            return Response(
                {
                    "error": {
                        "code": "CONFLICT",
                        "message": f"User with username '{username}' already exists",
                        "details": {},
                    }
                },
                status=status.HTTP_409_CONFLICT,
            )


@api_view(["GET"])
@permission_classes([IsAuthenticatedReadOnly])
def get_user(request, userId):
    """
    GET /api/v1/users/{userId}

    ADMIN reads any user, BUSINESS reads members of its own business,
    CONTRACTOR reads only itself. Users outside the caller's scope are
    reported as not found.
    """
    users = User.objects.filter(id=userId)
    if request.user.role == "BUSINESS":
        users = users.filter(business_id=request.user.business_id)
    elif request.user.role == "CONTRACTOR":
        users = users.filter(id=request.user.id)
    elif request.user.role != "ADMIN":
        users = users.none()

    user = users.first()
    if user is None:
        raise NotFoundError(f"User {userId} does not exist")
    return Response({"data": UserSerializer(user).data}, status=status.HTTP_200_OK)
