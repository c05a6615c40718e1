# User model with roles BUSINESS, CONTRACTOR, ADMIN and tenant links.

import uuid
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("directory", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
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
                ("password", models.CharField(max_length=128, verbose_name="password")),
                (
                    "last_login",
                    models.DateTimeField(
                        blank=True, null=True, verbose_name="last login"
                    ),
                ),
                ("username", models.CharField(max_length=150, unique=True)),
                ("display_name", models.CharField(max_length=255)),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("ADMIN", "Admin"),
                            ("BUSINESS", "Business"),
                            ("CONTRACTOR", "Contractor"),
                        ],
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "business",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="users",
                        to="directory.business",
                    ),
                ),
                (
                    "contractor",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="user",
                        to="directory.contractor",
                    ),
                ),
            ],
            options={
                "db_table": "users",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(role__in=["BUSINESS", "CONTRACTOR", "ADMIN"]),
                        name="valid_role",
                    ),
                    models.CheckConstraint(
                        condition=~models.Q(role="BUSINESS")
                        | models.Q(business__isnull=False),
                        name="business_user_has_business",
                    ),
                    models.CheckConstraint(
                        condition=~models.Q(role="CONTRACTOR")
                        | models.Q(contractor__isnull=False),
                        name="contractor_user_has_contractor",
                    ),
                ],
            },
        ),
    ]
