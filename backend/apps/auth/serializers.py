"""
Serializers for authentication endpoints.
"""

from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    """Serializer for login request."""

    username = serializers.CharField(required=True)
    password = serializers.CharField(required=True, write_only=True)

    def validate(self, attrs):
        username = attrs.get("username")
        password = attrs.get("password")

        if not username or not password:
            raise serializers.ValidationError("Username and password are required")

        return attrs


class LogoutSerializer(serializers.Serializer):
    """Serializer for logout request. Accepts refreshToken or refresh_token."""

    refreshToken = serializers.CharField(
        required=False, allow_blank=True, source="refresh_token"
    )

    def to_internal_value(self, data):
        if "refresh_token" in data and "refreshToken" not in data:
            data = {"refreshToken": data["refresh_token"]}
        return super().to_internal_value(data)
