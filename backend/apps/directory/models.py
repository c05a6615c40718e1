"""
Directory master data: businesses (tenants), contractors (payees), contracts.

All models follow the same hardening rules:
- is_active pattern (no hard deletes)
- Unique constraints on identifiers
- PROTECT foreign keys
- Budget usage is never stored; it is aggregated from Payment rows
"""

import uuid
from django.db import models


class BudgetPeriod(models.TextChoices):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class Business(models.Model):
    """A tenant. Every WorkItem and Payment belongs to exactly one Business."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    display_name = models.CharField(max_length=255)
    budget_cap = models.DecimalField(
        max_digits=15, decimal_places=2, null=True, blank=True
    )
    budget_period = models.CharField(
        max_length=20, choices=BudgetPeriod.choices, default=BudgetPeriod.MONTHLY
    )
    budget_start_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "directory_businesses"
        indexes = [
            models.Index(fields=["is_active"], name="idx_business_active"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(budget_cap__isnull=True)
                | models.Q(budget_cap__gte=0),
                name="business_budget_cap_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(budget_period__in=["MONTHLY", "QUARTERLY", "YEARLY"]),
                name="valid_budget_period",
            ),
        ]

    def __str__(self):
        return self.display_name


class Contractor(models.Model):
    """A payee with an optional connected payout account at the processor."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    display_name = models.CharField(max_length=255)
    connected_account_id = models.CharField(
        max_length=255, unique=True, null=True, blank=True
    )
    payouts_enabled = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "directory_contractors"
        indexes = [
            models.Index(fields=["is_active"], name="idx_contractor_active"),
        ]

    def __str__(self):
        return self.display_name

    @property
    def can_receive_payouts(self):
        return bool(
            self.is_active and self.connected_account_id and self.payouts_enabled
        )


class ContractStatus(models.TextChoices):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    TERMINATED = "TERMINATED"


class Contract(models.Model):
    """Engagement between a business and (optionally) a contractor."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey(
        Business, on_delete=models.PROTECT, related_name="contracts"
    )
    contractor = models.ForeignKey(
        Contractor,
        on_delete=models.PROTECT,
        related_name="contracts",
        null=True,
        blank=True,
    )
    title = models.CharField(max_length=255)
    code = models.CharField(max_length=100, unique=True)
    status = models.CharField(
        max_length=20, choices=ContractStatus.choices, default=ContractStatus.DRAFT
    )
    total_value = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    version = models.IntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "directory_contracts"
        indexes = [
            models.Index(fields=["business", "status"], name="idx_contract_business"),
            models.Index(fields=["contractor"], name="idx_contract_contractor"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    status__in=["DRAFT", "ACTIVE", "COMPLETED", "TERMINATED"]
                ),
                name="valid_contract_status",
            ),
            models.CheckConstraint(
                condition=models.Q(total_value__gte=0),
                name="contract_total_value_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(end_date__isnull=True)
                | models.Q(start_date__isnull=True)
                | models.Q(end_date__gte=models.F("start_date")),
                name="contract_end_after_start",
            ),
        ]

    def __str__(self):
        return f"{self.code} - {self.title}"
