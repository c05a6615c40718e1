"""
Work domain models: WorkItem and Submission.

A WorkItem is a unit of work a business offers; a Submission is one
delivery attempt by the assigned contractor. Nothing is physically deleted.
"""

import uuid
from django.core.validators import MinValueValidator
from django.db import models


class WorkItemStatus(models.TextChoices):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


class WorkItem(models.Model):
    """WorkItem model - deliverable offered by a business to a contractor."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # Always set, even when a contract is linked
    business = models.ForeignKey(
        "directory.Business", on_delete=models.PROTECT, related_name="work_items"
    )
    contract = models.ForeignKey(
        "directory.Contract",
        on_delete=models.PROTECT,
        related_name="work_items",
        null=True,
        blank=True,
    )
    # Targeted contractor before assignment, assignee afterwards
    contractor = models.ForeignKey(
        "directory.Contractor",
        on_delete=models.PROTECT,
        related_name="work_items",
        null=True,
        blank=True,
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(0.01)],
        null=True,
        blank=True,
    )
    currency = models.CharField(max_length=3)  # ISO 4217 three-letter code
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=20, choices=WorkItemStatus.choices, default=WorkItemStatus.DRAFT
    )
    version = models.IntegerField(default=1)
    created_by = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_work_items",
    )
    approved_by = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_work_items",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    published_at = models.DateTimeField(null=True, blank=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    declined_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "work_items"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(status__in=WorkItemStatus.values),
                name="valid_work_item_status",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__isnull=True) | models.Q(amount__gt=0),
                name="work_item_amount_positive",
            ),
            # Anything past DRAFT has a price
            models.CheckConstraint(
                condition=models.Q(status="DRAFT") | models.Q(amount__isnull=False),
                name="work_item_amount_set_when_published",
            ),
            # Anything past OPEN has an assignee
            models.CheckConstraint(
                condition=models.Q(status__in=["DRAFT", "OPEN", "CANCELLED", "DECLINED"])
                | models.Q(contractor__isnull=False),
                name="work_item_contractor_set_when_assigned",
            ),
            models.CheckConstraint(
                condition=~models.Q(status__in=["APPROVED", "PAID"])
                | models.Q(approved_at__isnull=False),
                name="work_item_approved_at_set",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "status"], name="idx_work_business_status"),
            models.Index(fields=["contractor", "status"], name="idx_work_contractor"),
            models.Index(fields=["contract"], name="idx_work_contract"),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def active_submission(self):
        """Highest-sequence submission, or None."""
        return self.submissions.order_by("-sequence").first()


class ReviewStatus(models.TextChoices):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Submission(models.Model):
    """Submission model - one delivery attempt for a WorkItem."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    work_item = models.ForeignKey(
        WorkItem, on_delete=models.PROTECT, related_name="submissions"
    )
    sequence = models.PositiveIntegerField()
    # Opaque artifact URLs from the blob store
    artifacts = models.JSONField(default=list)
    notes = models.TextField(blank=True, default="")
    submitted_at = models.DateTimeField(auto_now_add=True)
    submitted_by = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="submissions",
    )
    review_status = models.CharField(
        max_length=20, choices=ReviewStatus.choices, default=ReviewStatus.PENDING
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_notes = models.TextField(null=True, blank=True)
    reviewer = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_submissions",
    )

    class Meta:
        db_table = "submissions"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(sequence__gte=1), name="submission_sequence_positive"
            ),
            models.UniqueConstraint(
                fields=["work_item", "sequence"], name="unique_submission_sequence"
            ),
            models.CheckConstraint(
                condition=models.Q(review_status__in=ReviewStatus.values),
                name="valid_review_status",
            ),
            models.CheckConstraint(
                condition=models.Q(review_status="PENDING")
                | models.Q(reviewed_at__isnull=False),
                name="reviewed_at_set_when_reviewed",
            ),
        ]
        indexes = [
            models.Index(fields=["work_item", "sequence"], name="idx_submission_item"),
        ]
        ordering = ["sequence"]

    def __str__(self):
        return f"Submission #{self.sequence} for {self.work_item_id} ({self.review_status})"
