import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("pending_payment", "Pending Payment"),
    ("paid", "Paid"),
    ("confirmed", "Confirmed"),
    ("preparing", "Preparing"),
    ("ready", "Ready"),
    ("out_for_delivery", "Out for Delivery"),
    ("ready_for_pickup", "Ready for Pickup"),
    ("delivered", "Delivered"),
    ("picked_up", "Picked Up"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
    ("payment_failed", "Payment Failed"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
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
                    "order_number",
                    models.CharField(
                        help_text="Human-facing order reference",
                        max_length=32,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=STATUS_CHOICES,
                        db_index=True,
                        default="pending_payment",
                        help_text="Current status of the order (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "subtotal",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Items total in minor units"
                    ),
                ),
                (
                    "delivery_fee",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Delivery charge in minor units"
                    ),
                ),
                (
                    "grand_total",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Amount paid in minor units (subtotal + delivery fee)",
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True, help_text="When the order was cancelled", null=True
                    ),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the cancellation refund was credited",
                        null=True,
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        help_text="User who placed the order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "cook",
                    models.ForeignKey(
                        blank=True,
                        help_text="Cook assigned to this order (falls back to the tenant's cook)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cooked_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        blank=True,
                        help_text="Storefront the order was placed with",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["client", "status"],
                        name="orders_client_status_idx",
                    ),
                    models.Index(
                        fields=["tenant", "status"],
                        name="orders_tenant_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusTransition",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "previous_status",
                    models.CharField(choices=STATUS_CHOICES, max_length=32),
                ),
                ("new_status", models.CharField(choices=STATUS_CHOICES, max_length=32)),
                ("is_admin_override", models.BooleanField(default=False)),
                ("override_reason", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_transitions",
                        to="orders.order",
                    ),
                ),
                (
                    "triggered_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who triggered the change (null for system)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Order Status Transition",
                "verbose_name_plural": "Order Status Transitions",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
