"""
Authentication views: login, logout.

No domain logic - authentication only.
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import authenticate
from apps.auth.serializers import LoginSerializer, LogoutSerializer
from apps.users.serializers import UserSerializer

logger = logging.getLogger(__name__)


@api_view(["POST"])
@permission_classes([AllowAny])
def login(request):
    """
    POST /api/v1/auth/login

    Authenticate user and return JWT access and refresh tokens.
    """
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    username = serializer.validated_data["username"]
    password = serializer.validated_data["password"]

    user = authenticate(username=username, password=password)

    if user is None:
        logger.info("login_failed", extra={"operation": "LOGIN", "username": username})
        return Response(
            {
                "error": {
                    "code": "UNAUTHORIZED",
                    "message": "Invalid credentials",
                    "details": {},
                }
            },
            status=status.HTTP_401_UNAUTHORIZED,
        )

    refresh = RefreshToken.for_user(user)
    access_token = str(refresh.access_token)

    user_data = UserSerializer(user).data

    return Response(
        {
            "data": {
                "token": access_token,
                "refreshToken": str(refresh),
                "user": user_data,
            }
        },
        status=status.HTTP_200_OK,
    )


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def logout(request):
    """
    POST /api/v1/auth/logout

    Logout user and blacklist the refresh token.
    """
    serializer = LogoutSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    refresh_token = serializer.validated_data.get("refresh_token")
    if refresh_token:
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError:
            # Already expired or blacklisted; logout still succeeds
            logger.info(
                "logout_token_already_invalid",
                extra={"operation": "LOGOUT", "entity_id": str(request.user.id)},
            )

    return Response({"data": {"success": True}}, status=status.HTTP_200_OK)
