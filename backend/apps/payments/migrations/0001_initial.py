# Payment and IdempotencyKey.

import uuid
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


PAYMENT_STATUSES = [
    ("SCHEDULED", "Scheduled"),
    ("PROCESSING", "Processing"),
    ("COMPLETED", "Completed"),
    ("FAILED", "Failed"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("directory", "0001_initial"),
        ("work", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
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
                (
                    "linkage_kind",
                    models.CharField(
                        choices=[
                            ("CONTRACT_LINKED", "Contract Linked"),
                            ("DIRECT", "Direct"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=15,
                        validators=[django.core.validators.MinValueValidator(0.01)],
                    ),
                ),
                ("currency", models.CharField(max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=PAYMENT_STATUSES, default="SCHEDULED", max_length=20
                    ),
                ),
                ("idempotency_key", models.CharField(max_length=255, unique=True)),
                (
                    "external_transfer_id",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                (
                    "processor_status",
                    models.CharField(blank=True, max_length=50, null=True),
                ),
                ("failure_reason", models.TextField(blank=True, null=True)),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("scheduled_date", models.DateField()),
                ("completed_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("version", models.IntegerField(default=1)),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="directory.business",
                    ),
                ),
                (
                    "contractor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="directory.contractor",
                    ),
                ),
                (
                    "contract",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="directory.contract",
                    ),
                ),
                (
                    "work_item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="work.workitem",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "payments",
                "indexes": [
                    models.Index(
                        fields=["business", "status"], name="idx_payment_business"
                    ),
                    models.Index(
                        fields=["contractor", "status"], name="idx_payment_contractor"
                    ),
                    models.Index(fields=["status"], name="idx_payment_status"),
                    models.Index(
                        fields=["external_transfer_id"], name="idx_payment_transfer"
                    ),
                    models.Index(
                        fields=["completed_date"], name="idx_payment_completed"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            status__in=["SCHEDULED", "PROCESSING", "COMPLETED", "FAILED"]
                        ),
                        name="valid_payment_status",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="payment_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=~models.Q(status="COMPLETED")
                        | models.Q(completed_date__isnull=False),
                        name="completed_date_set_when_completed",
                    ),
                    models.CheckConstraint(
                        condition=(
                            models.Q(linkage_kind="CONTRACT_LINKED")
                            & models.Q(contract__isnull=False)
                        )
                        | (
                            models.Q(linkage_kind="DIRECT")
                            & models.Q(contract__isnull=True)
                        ),
                        name="linkage_matches_contract",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(work_item__isnull=False),
                        fields=["work_item"],
                        name="unique_payment_per_work_item",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="IdempotencyKey",
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
                ("key", models.CharField(db_index=True, max_length=255)),
                ("operation", models.CharField(max_length=100)),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to="directory.business",
                    ),
                ),
                ("target_object_id", models.UUIDField(null=True)),
                ("response_code", models.IntegerField(null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "idempotency_keys",
                "indexes": [
                    models.Index(fields=["key"], name="idx_idempotency_key"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["business", "key", "operation"],
                        name="unique_idempotency_per_operation",
                    ),
                ],
            },
        ),
    ]
