import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import wallets.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Wallet",
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
                (
                    "kind",
                    models.CharField(
                        choices=[("client", "Client"), ("cook", "Cook")],
                        help_text="Client or cook wallet",
                        max_length=16,
                    ),
                ),
                (
                    "withdrawable_balance",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Withdrawable funds in minor units"
                    ),
                ),
                (
                    "unwithdrawable_balance",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Funds not yet withdrawable, in minor units",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default=wallets.models.default_currency,
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="User the funds belong to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="wallets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        blank=True,
                        help_text="Tenant for cook wallets; null for client wallets",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="wallets",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet",
                "verbose_name_plural": "Wallets",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("owner", "tenant"),
                        name="wallet_unique_owner_tenant",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("tenant__isnull", True)),
                        fields=("owner",),
                        name="wallet_unique_client_owner",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("tenant__isnull", False),
                            ("unwithdrawable_balance", 0),
                            _connector="OR",
                        ),
                        name="wallet_client_withdrawable_only",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WalletTransaction",
            fields=[
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
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("refund", "Refund"),
                            ("order_cancelled", "Order Cancelled"),
                            ("payment_credit", "Payment Credit"),
                            ("withdrawal", "Withdrawal"),
                            ("commission", "Commission"),
                            ("refund_deduction", "Refund Deduction"),
                            ("adjustment", "Adjustment"),
                        ],
                        db_index=True,
                        max_length=32,
                    ),
                ),
                (
                    "direction",
                    models.CharField(
                        choices=[("credit", "Credit"), ("debit", "Debit")],
                        max_length=8,
                    ),
                ),
                (
                    "balance_type",
                    models.CharField(
                        choices=[
                            ("withdrawable", "Withdrawable"),
                            ("unwithdrawable", "Unwithdrawable"),
                        ],
                        default="withdrawable",
                        max_length=16,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(help_text="Amount in minor units"),
                ),
                ("balance_before", models.PositiveBigIntegerField()),
                ("balance_after", models.PositiveBigIntegerField()),
                ("currency", models.CharField(max_length=3)),
                (
                    "reference_type",
                    models.CharField(blank=True, max_length=50, null=True),
                ),
                (
                    "reference_id",
                    models.CharField(blank=True, max_length=64, null=True),
                ),
                (
                    "description",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Unique key that makes the operation safe to repeat",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "wallet",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="wallets.wallet",
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet Transaction",
                "verbose_name_plural": "Wallet Transactions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["wallet", "created_at"],
                        name="wallet_txn_wallet_created_idx",
                    ),
                    models.Index(
                        fields=["reference_type", "reference_id"],
                        name="wallet_txn_reference_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="wallet_txn_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReconciliationItem",
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
                ("reference_type", models.CharField(max_length=50)),
                ("reference_id", models.CharField(db_index=True, max_length=64)),
                ("amount", models.PositiveBigIntegerField()),
                ("reason", models.CharField(max_length=255)),
                ("error_code", models.CharField(max_length=64)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("resolved", models.BooleanField(db_index=True, default=False)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                (
                    "wallet",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reconciliation_items",
                        to="wallets.wallet",
                    ),
                ),
            ],
            options={
                "verbose_name": "Reconciliation Item",
                "verbose_name_plural": "Reconciliation Items",
                "ordering": ["-created_at"],
            },
        ),
    ]
