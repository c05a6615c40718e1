"""
Directory serializers - no business logic, validation only.
"""

from rest_framework import serializers
from apps.directory.models import BudgetPeriod, Business, Contract, Contractor


class BusinessSerializer(serializers.ModelSerializer):
    """Serializer for Business."""

    id = serializers.UUIDField(read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)
    budgetCap = serializers.DecimalField(
        source="budget_cap", max_digits=15, decimal_places=2, read_only=True
    )
    budgetPeriod = serializers.CharField(source="budget_period", read_only=True)
    budgetStartDate = serializers.DateField(source="budget_start_date", read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Business
        fields = [
            "id",
            "displayName",
            "budgetCap",
            "budgetPeriod",
            "budgetStartDate",
            "isActive",
            "createdAt",
        ]


class BusinessCreateSerializer(serializers.Serializer):
    displayName = serializers.CharField(max_length=255, source="display_name")
    budgetCap = serializers.DecimalField(
        max_digits=15,
        decimal_places=2,
        required=False,
        allow_null=True,
        min_value=0,
        source="budget_cap",
    )
    budgetPeriod = serializers.ChoiceField(
        choices=BudgetPeriod.choices,
        required=False,
        default=BudgetPeriod.MONTHLY,
        source="budget_period",
    )
    budgetStartDate = serializers.DateField(
        required=False, allow_null=True, source="budget_start_date"
    )


class BusinessUpdateSerializer(serializers.Serializer):
    displayName = serializers.CharField(
        max_length=255, required=False, source="display_name"
    )
    isActive = serializers.BooleanField(required=False, source="is_active")


class BudgetUpdateSerializer(serializers.Serializer):
    """Only keys present in the request are applied."""

    budgetCap = serializers.DecimalField(
        max_digits=15,
        decimal_places=2,
        required=False,
        allow_null=True,
        min_value=0,
        source="budget_cap",
    )
    budgetPeriod = serializers.ChoiceField(
        choices=BudgetPeriod.choices, required=False, source="budget_period"
    )
    budgetStartDate = serializers.DateField(
        required=False, allow_null=True, source="budget_start_date"
    )


class ContractorSerializer(serializers.ModelSerializer):
    """Serializer for Contractor."""

    id = serializers.UUIDField(read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)
    connectedAccountId = serializers.CharField(
        source="connected_account_id", read_only=True, allow_null=True
    )
    payoutsEnabled = serializers.BooleanField(source="payouts_enabled", read_only=True)
    canReceivePayouts = serializers.BooleanField(
        source="can_receive_payouts", read_only=True
    )
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Contractor
        fields = [
            "id",
            "displayName",
            "connectedAccountId",
            "payoutsEnabled",
            "canReceivePayouts",
            "isActive",
            "createdAt",
        ]


class ContractorCreateSerializer(serializers.Serializer):
    displayName = serializers.CharField(max_length=255, source="display_name")
    connectedAccountId = serializers.CharField(
        max_length=255,
        required=False,
        allow_null=True,
        allow_blank=True,
        source="connected_account_id",
    )
    payoutsEnabled = serializers.BooleanField(
        required=False, default=False, source="payouts_enabled"
    )


class ContractorUpdateSerializer(serializers.Serializer):
    displayName = serializers.CharField(
        max_length=255, required=False, source="display_name"
    )
    connectedAccountId = serializers.CharField(
        max_length=255,
        required=False,
        allow_null=True,
        allow_blank=True,
        source="connected_account_id",
    )
    payoutsEnabled = serializers.BooleanField(required=False, source="payouts_enabled")
    isActive = serializers.BooleanField(required=False, source="is_active")


class ContractSerializer(serializers.ModelSerializer):
    """Serializer for Contract."""

    id = serializers.UUIDField(read_only=True)
    businessId = serializers.UUIDField(source="business_id", read_only=True)
    contractorId = serializers.UUIDField(
        source="contractor_id", read_only=True, allow_null=True
    )
    totalValue = serializers.DecimalField(
        source="total_value", max_digits=15, decimal_places=2, read_only=True
    )
    startDate = serializers.DateField(source="start_date", read_only=True)
    endDate = serializers.DateField(source="end_date", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Contract
        fields = [
            "id",
            "businessId",
            "contractorId",
            "title",
            "code",
            "status",
            "totalValue",
            "startDate",
            "endDate",
            "version",
            "createdAt",
            "updatedAt",
        ]


class ContractCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    code = serializers.CharField(max_length=100)
    contractorId = serializers.UUIDField(
        required=False, allow_null=True, source="contractor_id"
    )
    totalValue = serializers.DecimalField(
        max_digits=15,
        decimal_places=2,
        required=False,
        min_value=0,
        source="total_value",
    )
    startDate = serializers.DateField(required=False, allow_null=True, source="start_date")
    endDate = serializers.DateField(required=False, allow_null=True, source="end_date")
