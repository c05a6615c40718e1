"""
Work serializers - no business logic, validation only.
"""

from rest_framework import serializers
from apps.work.models import Submission, WorkItem


class SubmissionSerializer(serializers.ModelSerializer):
    """Serializer for Submission."""

    id = serializers.UUIDField(read_only=True)
    workItemId = serializers.UUIDField(source="work_item_id", read_only=True)
    sequence = serializers.IntegerField(read_only=True)
    artifacts = serializers.ListField(child=serializers.CharField(), read_only=True)
    notes = serializers.CharField(read_only=True)
    submittedAt = serializers.DateTimeField(source="submitted_at", read_only=True)
    submittedBy = serializers.UUIDField(source="submitted_by_id", read_only=True)
    reviewStatus = serializers.CharField(source="review_status", read_only=True)
    reviewedAt = serializers.DateTimeField(source="reviewed_at", read_only=True)
    reviewNotes = serializers.CharField(source="review_notes", read_only=True)
    reviewerId = serializers.UUIDField(source="reviewer_id", read_only=True)

    class Meta:
        model = Submission
        fields = [
            "id",
            "workItemId",
            "sequence",
            "artifacts",
            "notes",
            "submittedAt",
            "submittedBy",
            "reviewStatus",
            "reviewedAt",
            "reviewNotes",
            "reviewerId",
        ]


class WorkItemListSerializer(serializers.ModelSerializer):
    """Serializer for WorkItem list view."""

    id = serializers.UUIDField(read_only=True)
    businessId = serializers.UUIDField(source="business_id", read_only=True)
    contractId = serializers.UUIDField(source="contract_id", read_only=True)
    contractorId = serializers.UUIDField(source="contractor_id", read_only=True)
    title = serializers.CharField(read_only=True)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, read_only=True)
    currency = serializers.CharField(read_only=True)
    dueDate = serializers.DateField(source="due_date", read_only=True)
    status = serializers.CharField(read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = WorkItem
        fields = [
            "id",
            "businessId",
            "contractId",
            "contractorId",
            "title",
            "amount",
            "currency",
            "dueDate",
            "status",
            "createdAt",
        ]


class WorkItemSerializer(WorkItemListSerializer):
    """Serializer for WorkItem detail, with submissions."""

    description = serializers.CharField(read_only=True)
    version = serializers.IntegerField(read_only=True)
    createdBy = serializers.UUIDField(source="created_by_id", read_only=True)
    approvedBy = serializers.UUIDField(source="approved_by_id", read_only=True)
    publishedAt = serializers.DateTimeField(source="published_at", read_only=True)
    assignedAt = serializers.DateTimeField(source="assigned_at", read_only=True)
    acceptedAt = serializers.DateTimeField(source="accepted_at", read_only=True)
    submittedAt = serializers.DateTimeField(source="submitted_at", read_only=True)
    approvedAt = serializers.DateTimeField(source="approved_at", read_only=True)
    paidAt = serializers.DateTimeField(source="paid_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)
    submissions = SubmissionSerializer(many=True, read_only=True)

    class Meta(WorkItemListSerializer.Meta):
        fields = WorkItemListSerializer.Meta.fields + [
            "description",
            "version",
            "createdBy",
            "approvedBy",
            "publishedAt",
            "assignedAt",
            "acceptedAt",
            "submittedAt",
            "approvedAt",
            "paidAt",
            "updatedAt",
            "submissions",
        ]


class WorkItemCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    amount = serializers.DecimalField(
        max_digits=15, decimal_places=2, required=False, allow_null=True
    )
    currency = serializers.CharField(max_length=3, required=False, allow_null=True)
    contractId = serializers.UUIDField(
        required=False, allow_null=True, source="contract_id"
    )
    contractorId = serializers.UUIDField(
        required=False, allow_null=True, source="contractor_id"
    )
    dueDate = serializers.DateField(required=False, allow_null=True, source="due_date")
    publish = serializers.BooleanField(required=False, default=False)


class WorkItemUpdateSerializer(serializers.Serializer):
    """Only keys present in the request are applied."""

    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    amount = serializers.DecimalField(
        max_digits=15, decimal_places=2, required=False, allow_null=True
    )
    currency = serializers.CharField(max_length=3, required=False)
    dueDate = serializers.DateField(required=False, allow_null=True, source="due_date")
    contractorId = serializers.UUIDField(
        required=False, allow_null=True, source="contractor_id"
    )


class AssignSerializer(serializers.Serializer):
    contractorId = serializers.UUIDField(source="contractor_id")


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class SubmitWorkSerializer(serializers.Serializer):
    artifacts = serializers.ListField(
        child=serializers.CharField(max_length=1024), allow_empty=False
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ReviewSerializer(serializers.Serializer):
    reviewNotes = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, source="review_notes"
    )
