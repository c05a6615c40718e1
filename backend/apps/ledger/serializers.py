"""
Ledger serializers - render aggregates, no business logic.
"""

from rest_framework import serializers


def _money(**kwargs):
    return serializers.DecimalField(
        max_digits=17, decimal_places=2, read_only=True, **kwargs
    )


class PeriodSerializer(serializers.Serializer):
    start = serializers.DateField(read_only=True, allow_null=True)
    end = serializers.DateField(read_only=True, allow_null=True)


class BusinessSummarySerializer(serializers.Serializer):
    businessId = serializers.UUIDField(read_only=True)
    period = PeriodSerializer(read_only=True)
    currency = serializers.CharField(read_only=True)
    totalPaid = _money()
    totalPending = _money()


class ContractorSummarySerializer(serializers.Serializer):
    contractorId = serializers.UUIDField(read_only=True)
    period = PeriodSerializer(read_only=True)
    currency = serializers.CharField(read_only=True)
    totalEarned = _money()
    totalPending = _money()


class MonthlyTotalSerializer(serializers.Serializer):
    month = serializers.CharField(read_only=True)
    total = _money()
    count = serializers.IntegerField(read_only=True)


class BudgetSummarySerializer(serializers.Serializer):
    businessId = serializers.UUIDField(read_only=True)
    currency = serializers.CharField(read_only=True)
    budgetCap = _money(allow_null=True)
    budgetPeriod = serializers.CharField(read_only=True)
    budgetStartDate = serializers.DateField(read_only=True, allow_null=True)
    period = PeriodSerializer(read_only=True)
    budgetUsed = _money()
    remainingBudget = _money(allow_null=True)
    paidInPeriod = _money()
    outstandingCommitments = _money()
