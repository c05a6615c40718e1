"""
Serializers for User model.

No business logic in serializers - validation only.
"""

from rest_framework import serializers
from apps.users.models import User, Role


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""

    id = serializers.UUIDField(read_only=True)
    role = serializers.ChoiceField(choices=Role.choices, read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)
    businessId = serializers.UUIDField(source="business_id", read_only=True)
    contractorId = serializers.UUIDField(source="contractor_id", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "displayName", "role", "businessId", "contractorId"]
        read_only_fields = ["id", "role"]


class UserListSerializer(serializers.ModelSerializer):
    """Serializer for user list endpoint."""

    id = serializers.UUIDField(read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "displayName", "role"]


class UserCreateSerializer(serializers.Serializer):
    """Serializer for user creation endpoint."""

    username = serializers.CharField(max_length=150, required=True)
    password = serializers.CharField(write_only=True, required=True)
    displayName = serializers.CharField(
        max_length=255, required=False, source="display_name"
    )
    role = serializers.ChoiceField(choices=Role.choices, required=True)
    businessId = serializers.UUIDField(required=False, source="business_id")
    contractorId = serializers.UUIDField(required=False, source="contractor_id")

    def validate_role(self, value):
        """Ensure only BUSINESS or CONTRACTOR users can be created (not ADMIN)."""
        if value == Role.ADMIN:
            raise serializers.ValidationError("Cannot create ADMIN users via API")
        return value

    def validate(self, attrs):
        role = attrs.get("role")
        if role == Role.BUSINESS and not attrs.get("business_id"):
            raise serializers.ValidationError(
                {"businessId": "BUSINESS users require businessId"}
            )
        if role == Role.CONTRACTOR and not attrs.get("contractor_id"):
            raise serializers.ValidationError(
                {"contractorId": "CONTRACTOR users require contractorId"}
            )
        return attrs
