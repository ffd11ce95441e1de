import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("creators", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Commission",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_id", models.CharField(db_index=True, max_length=100)),
                ("routine_id", models.CharField(blank=True, max_length=100, null=True)),
                (
                    "variant",
                    models.CharField(
                        choices=[("base", "Base routine"), ("upsell_1", "Upsell 1"), ("upsell_2", "Upsell 2")],
                        default="base",
                        max_length=20,
                    ),
                ),
                ("currency", models.CharField(default="EUR", max_length=3)),
                ("gross_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("commission_rate", models.DecimalField(decimal_places=2, max_digits=5)),
                ("commission_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("payable", "Payable"),
                            ("paid", "Paid"),
                            ("canceled", "Canceled"),
                            ("adjusted", "Adjusted"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("unlock_at", models.DateTimeField(db_index=True)),
                ("payable_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.TextField(blank=True, null=True)),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                ("adjusted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField()),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to="creators.creator",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["creator", "status"], name="commission_creator_status_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("creator", "order_id", "variant"),
                        name="unique_commission_per_order_variant",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ReconciliationCase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("settled_cancellation", "Cancellation of a paid commission"),
                            ("transfer_failed_permanent", "Transfer rejected by provider"),
                            ("ambiguous_transfer", "Transfer outcome unknown"),
                        ],
                        max_length=40,
                    ),
                ),
                (
                    "status",
                    models.CharField(choices=[("open", "Open"), ("resolved", "Resolved")], default="open", max_length=20),
                ),
                ("detail", models.TextField()),
                ("resolution_note", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                (
                    "commission",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reconciliation_cases",
                        to="commissions.commission",
                    ),
                ),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reconciliation_cases",
                        to="creators.creator",
                    ),
                ),
                (
                    "resolved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="resolved_cases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
