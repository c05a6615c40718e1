"""
Payment serializers - no business logic, validation only.
"""

from decimal import Decimal

from rest_framework import serializers
from apps.payments.models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    """Serializer for Payment, including its linkage."""

    id = serializers.UUIDField(read_only=True)
    businessId = serializers.UUIDField(source="business_id", read_only=True)
    contractorId = serializers.UUIDField(source="contractor_id", read_only=True)
    linkage = serializers.SerializerMethodField()
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, read_only=True)
    currency = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    idempotencyKey = serializers.CharField(source="idempotency_key", read_only=True)
    externalTransferId = serializers.CharField(
        source="external_transfer_id", read_only=True
    )
    processorStatus = serializers.CharField(source="processor_status", read_only=True)
    failureReason = serializers.CharField(source="failure_reason", read_only=True)
    attempts = serializers.IntegerField(read_only=True)
    scheduledDate = serializers.DateField(source="scheduled_date", read_only=True)
    completedDate = serializers.DateField(source="completed_date", read_only=True)
    notes = serializers.CharField(read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "businessId",
            "contractorId",
            "linkage",
            "amount",
            "currency",
            "status",
            "idempotencyKey",
            "externalTransferId",
            "processorStatus",
            "failureReason",
            "attempts",
            "scheduledDate",
            "completedDate",
            "notes",
            "createdAt",
            "updatedAt",
        ]

    def get_linkage(self, obj):
        return {
            "kind": obj.linkage_kind,
            "contractId": str(obj.contract_id) if obj.contract_id else None,
            "workItemId": str(obj.work_item_id) if obj.work_item_id else None,
        }


class DirectPaymentCreateSerializer(serializers.Serializer):
    contractorId = serializers.UUIDField(source="contractor_id")
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal("0.01"))
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    scheduledDate = serializers.DateField(
        required=False, allow_null=True, source="scheduled_date"
    )


class ProcessorWebhookSerializer(serializers.Serializer):
    """Body the processor posts when a transfer changes state."""

    transferId = serializers.CharField(required=False, allow_null=True, source="transfer_id")
    idempotencyKey = serializers.CharField(
        required=False, allow_null=True, source="idempotency_key"
    )
    status = serializers.CharField()
    failureReason = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, source="failure_reason"
    )

    def validate(self, attrs):
        if not attrs.get("transfer_id") and not attrs.get("idempotency_key"):
            raise serializers.ValidationError(
                "transferId or idempotencyKey is required"
            )
        return attrs
