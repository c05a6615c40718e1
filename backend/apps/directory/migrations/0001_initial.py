# Directory master data: Business, Contractor, Contract.

import uuid
from decimal import Decimal
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Business",
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
                ("display_name", models.CharField(max_length=255)),
                (
                    "budget_cap",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=15, null=True
                    ),
                ),
                (
                    "budget_period",
                    models.CharField(
                        choices=[
                            ("MONTHLY", "Monthly"),
                            ("QUARTERLY", "Quarterly"),
                            ("YEARLY", "Yearly"),
                        ],
                        default="MONTHLY",
                        max_length=20,
                    ),
                ),
                ("budget_start_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("deactivated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "directory_businesses",
                "indexes": [
                    models.Index(fields=["is_active"], name="idx_business_active")
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(budget_cap__isnull=True)
                        | models.Q(budget_cap__gte=0),
                        name="business_budget_cap_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            budget_period__in=["MONTHLY", "QUARTERLY", "YEARLY"]
                        ),
                        name="valid_budget_period",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Contractor",
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
                ("display_name", models.CharField(max_length=255)),
                (
                    "connected_account_id",
                    models.CharField(blank=True, max_length=255, null=True, unique=True),
                ),
                ("payouts_enabled", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("deactivated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "directory_contractors",
                "indexes": [
                    models.Index(fields=["is_active"], name="idx_contractor_active")
                ],
            },
        ),
        migrations.CreateModel(
            name="Contract",
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
                ("code", models.CharField(max_length=100, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("DRAFT", "Draft"),
                            ("ACTIVE", "Active"),
                            ("COMPLETED", "Completed"),
                            ("TERMINATED", "Terminated"),
                        ],
                        default="DRAFT",
                        max_length=20,
                    ),
                ),
                (
                    "total_value",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0"), max_digits=15
                    ),
                ),
                ("start_date", models.DateField(blank=True, null=True)),
                ("end_date", models.DateField(blank=True, null=True)),
                ("version", models.IntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="contracts",
                        to="directory.business",
                    ),
                ),
                (
                    "contractor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="contracts",
                        to="directory.contractor",
                    ),
                ),
            ],
            options={
                "db_table": "directory_contracts",
                "indexes": [
                    models.Index(
                        fields=["business", "status"], name="idx_contract_business"
                    ),
                    models.Index(fields=["contractor"], name="idx_contract_contractor"),
                ],
                "constraints": [
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
                ],
            },
        ),
    ]
