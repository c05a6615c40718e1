"""
Payment domain models: Payment and IdempotencyKey.

A Payment always carries the paying business and the payee contractor
directly, whether it is linked to a contract/work item or made directly.
Aggregates filter on those columns and never infer ownership via Contract.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from django.db import models
from django.core.validators import MinValueValidator


class PaymentStatus(models.TextChoices):
    SCHEDULED = "SCHEDULED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Linkage(models.TextChoices):
    CONTRACT_LINKED = "CONTRACT_LINKED"
    DIRECT = "DIRECT"


@dataclass(frozen=True)
class ContractLinked:
    business_id: uuid.UUID
    contract_id: uuid.UUID
    work_item_id: Optional[uuid.UUID]


@dataclass(frozen=True)
class Direct:
    business_id: uuid.UUID
    work_item_id: Optional[uuid.UUID]


class Payment(models.Model):
    """Payment model - one transfer to a contractor's connected account."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey(
        "directory.Business", on_delete=models.PROTECT, related_name="payments"
    )
    contractor = models.ForeignKey(
        "directory.Contractor", on_delete=models.PROTECT, related_name="payments"
    )
    linkage_kind = models.CharField(max_length=20, choices=Linkage.choices)
    contract = models.ForeignKey(
        "directory.Contract",
        on_delete=models.PROTECT,
        related_name="payments",
        null=True,
        blank=True,
    )
    work_item = models.ForeignKey(
        "work.WorkItem",
        on_delete=models.PROTECT,
        related_name="payments",
        null=True,
        blank=True,
    )
    amount = models.DecimalField(
        max_digits=15, decimal_places=2, validators=[MinValueValidator(0.01)]
    )
    currency = models.CharField(max_length=3)  # ISO 4217 three-letter code
    status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.SCHEDULED
    )
    idempotency_key = models.CharField(max_length=255, unique=True)
    external_transfer_id = models.CharField(max_length=255, null=True, blank=True)
    processor_status = models.CharField(max_length=50, null=True, blank=True)
    failure_reason = models.TextField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=0)
    scheduled_date = models.DateField()
    completed_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_payments",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    version = models.IntegerField(default=1)

    class Meta:
        db_table = "payments"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    status__in=["SCHEDULED", "PROCESSING", "COMPLETED", "FAILED"]
                ),
                name="valid_payment_status",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="payment_amount_positive"
            ),
            models.CheckConstraint(
                condition=~models.Q(status="COMPLETED")
                | models.Q(completed_date__isnull=False),
                name="completed_date_set_when_completed",
            ),
            # CONTRACT_LINKED <=> contract set
            models.CheckConstraint(
                condition=(
                    models.Q(linkage_kind="CONTRACT_LINKED")
                    & models.Q(contract__isnull=False)
                )
                | (models.Q(linkage_kind="DIRECT") & models.Q(contract__isnull=True)),
                name="linkage_matches_contract",
            ),
            # At most one payment per work item
            models.UniqueConstraint(
                fields=["work_item"],
                condition=models.Q(work_item__isnull=False),
                name="unique_payment_per_work_item",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "status"], name="idx_payment_business"),
            models.Index(fields=["contractor", "status"], name="idx_payment_contractor"),
            models.Index(fields=["status"], name="idx_payment_status"),
            models.Index(fields=["external_transfer_id"], name="idx_payment_transfer"),
            models.Index(fields=["completed_date"], name="idx_payment_completed"),
        ]

    def __str__(self):
        return f"{self.contractor_id} - {self.amount} {self.currency} ({self.status})"

    @property
    def linkage(self):
        """Tagged view of the payment's attribution."""
        if self.linkage_kind == Linkage.CONTRACT_LINKED:
            return ContractLinked(
                business_id=self.business_id,
                contract_id=self.contract_id,
                work_item_id=self.work_item_id,
            )
        return Direct(business_id=self.business_id, work_item_id=self.work_item_id)


class IdempotencyKey(models.Model):
    """
    Idempotency key for preventing duplicate financial operations.

    Keys are client-supplied, so they are scoped to the business that sent
    them: two businesses may use the same key without seeing each other.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key = models.CharField(max_length=255, db_index=True)
    operation = models.CharField(max_length=100)
    business = models.ForeignKey(
        "directory.Business", on_delete=models.CASCADE, related_name="+"
    )
    target_object_id = models.UUIDField(null=True)
    response_code = models.IntegerField(null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"
        constraints = [
            models.UniqueConstraint(
                fields=["business", "key", "operation"],
                name="unique_idempotency_per_operation",
            )
        ]
        indexes = [
            models.Index(fields=["key"], name="idx_idempotency_key"),
        ]

    def __str__(self):
        return f"{self.operation}:{self.key}"
