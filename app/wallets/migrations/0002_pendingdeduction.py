import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("orders", "0001_initial"),
        ("wallets", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PendingDeduction",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("original_amount", models.PositiveBigIntegerField()),
                ("remaining_amount", models.PositiveBigIntegerField()),
                ("reason", models.CharField(max_length=255)),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("cancellation_refund", "Cancellation Refund"),
                            ("complaint_refund", "Complaint Refund"),
                        ],
                        max_length=32,
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "settled_at",
                    models.DateTimeField(blank=True, db_index=True, null=True),
                ),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="pending_deductions",
                        to="orders.order",
                    ),
                ),
                (
                    "wallet",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="pending_deductions",
                        to="wallets.wallet",
                    ),
                ),
            ],
            options={
                "verbose_name": "Pending Deduction",
                "verbose_name_plural": "Pending Deductions",
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(original_amount__gt=0),
                        name="pending_deduction_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            remaining_amount__lte=models.F("original_amount")
                        ),
                        name="pending_deduction_remaining_lte_original",
                    ),
                ],
            },
        ),
    ]
