# WorkItem and Submission.

import uuid
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


WORK_ITEM_STATUSES = [
    ("DRAFT", "Draft"),
    ("OPEN", "Open"),
    ("ASSIGNED", "Assigned"),
    ("SUBMITTED", "Submitted"),
    ("APPROVED", "Approved"),
    ("REJECTED", "Rejected"),
    ("PAID", "Paid"),
    ("DECLINED", "Declined"),
    ("CANCELLED", "Cancelled"),
]

REVIEW_STATUSES = [
    ("PENDING", "Pending"),
    ("APPROVED", "Approved"),
    ("REJECTED", "Rejected"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("directory", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="WorkItem",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=15,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0.01)],
                    ),
                ),
                ("currency", models.CharField(max_length=3)),
                ("due_date", models.DateField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=WORK_ITEM_STATUSES, default="DRAFT", max_length=20
                    ),
                ),
                ("version", models.IntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("published_at", models.DateTimeField(blank=True, null=True)),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
                ("accepted_at", models.DateTimeField(blank=True, null=True)),
                ("declined_at", models.DateTimeField(blank=True, null=True)),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="work_items",
                        to="directory.business",
                    ),
                ),
                (
                    "contract",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="work_items",
                        to="directory.contract",
                    ),
                ),
                (
                    "contractor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="work_items",
                        to="directory.contractor",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_work_items",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="approved_work_items",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "work_items",
                "indexes": [
                    models.Index(
                        fields=["business", "status"], name="idx_work_business_status"
                    ),
                    models.Index(
                        fields=["contractor", "status"], name="idx_work_contractor"
                    ),
                    models.Index(fields=["contract"], name="idx_work_contract"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            status__in=[value for value, _ in WORK_ITEM_STATUSES]
                        ),
                        name="valid_work_item_status",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount__isnull=True)
                        | models.Q(amount__gt=0),
                        name="work_item_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(status="DRAFT")
                        | models.Q(amount__isnull=False),
                        name="work_item_amount_set_when_published",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            status__in=["DRAFT", "OPEN", "CANCELLED", "DECLINED"]
                        )
                        | models.Q(contractor__isnull=False),
                        name="work_item_contractor_set_when_assigned",
                    ),
                    models.CheckConstraint(
                        condition=~models.Q(status__in=["APPROVED", "PAID"])
                        | models.Q(approved_at__isnull=False),
                        name="work_item_approved_at_set",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Submission",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("sequence", models.PositiveIntegerField()),
                ("artifacts", models.JSONField(default=list)),
                ("notes", models.TextField(blank=True, default="")),
                ("submitted_at", models.DateTimeField(auto_now_add=True)),
                (
                    "review_status",
                    models.CharField(
                        choices=REVIEW_STATUSES, default="PENDING", max_length=20
                    ),
                ),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("review_notes", models.TextField(blank=True, null=True)),
                (
                    "work_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="submissions",
                        to="work.workitem",
                    ),
                ),
                (
                    "submitted_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="submissions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "reviewer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_submissions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "submissions",
                "ordering": ["sequence"],
                "indexes": [
                    models.Index(
                        fields=["work_item", "sequence"], name="idx_submission_item"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(sequence__gte=1),
                        name="submission_sequence_positive",
                    ),
                    models.UniqueConstraint(
                        fields=["work_item", "sequence"],
                        name="unique_submission_sequence",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            review_status__in=[value for value, _ in REVIEW_STATUSES]
                        ),
                        name="valid_review_status",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(review_status="PENDING")
                        | models.Q(reviewed_at__isnull=False),
                        name="reviewed_at_set_when_reviewed",
                    ),
                ],
            },
        ),
    ]
