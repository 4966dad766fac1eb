"""
Order models.

Order:
    The fields of a marketplace order that cancellation and refund read
    and write. Status changes go through django-fsm transitions, invoked
    by orders.services.OrderStateTracker.

OrderStatusTransition:
    Append-only history of status changes, one row per change.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin

from orders.states import CANCELLABLE_STATUSES, OrderStatus


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    A client's order from one tenant.

    Amounts are integers in the minor unit of the wallet currency.

    Fields:
        order_number: Human-facing reference shown to clients and cooks
        client: User who placed (and paid for) the order
        tenant: Storefront the order was placed with
        cook: Cook assigned to the order; when null the tenant's cook
            is used
        status: Current FSM status
        subtotal: Sum of the items
        delivery_fee: Delivery charge
        grand_total: Amount paid, subtotal + delivery_fee
        cancelled_at: When the order was cancelled
        refunded_at: When the cancellation refund was credited
    """

    order_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Human-facing order reference",
    )

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
        help_text="User who placed the order",
    )

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
        help_text="Storefront the order was placed with",
    )

    cook = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cooked_orders",
        help_text="Cook assigned to this order (falls back to the tenant's cook)",
    )

    status = FSMField(
        default=OrderStatus.PENDING_PAYMENT,
        choices=OrderStatus.choices,
        db_index=True,
        help_text="Current status of the order (managed by FSM)",
    )

    subtotal = models.PositiveBigIntegerField(
        default=0,
        help_text="Items total in minor units",
    )

    delivery_fee = models.PositiveBigIntegerField(
        default=0,
        help_text="Delivery charge in minor units",
    )

    grand_total = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount paid in minor units (subtotal + delivery fee)",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order was cancelled",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the cancellation refund was credited",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        indexes = [
            models.Index(fields=["client", "status"], name="orders_client_status_idx"),
            models.Index(fields=["tenant", "status"], name="orders_tenant_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Order({self.order_number}, {self.status})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=list(CANCELLABLE_STATUSES),
        target=OrderStatus.CANCELLED,
    )
    def cancel(self):
        """
        Cancel the order.

        Transition: PAID/CONFIRMED -> CANCELLED
        """
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=OrderStatus.CANCELLED,
        target=OrderStatus.REFUNDED,
    )
    def mark_refunded(self):
        """
        Record that the cancellation refund has been credited.

        Transition: CANCELLED -> REFUNDED
        """
        self.refunded_at = timezone.now()


class OrderStatusTransition(AppendOnlyMixin, models.Model):
    """
    One status change of an order.

    Rows are written once by OrderStateTracker and never modified.

    Fields:
        order: The order that changed status
        triggered_by: User who caused the change; null for system actions
            such as the refund task
        previous_status: Status before the change
        new_status: Status after the change
        is_admin_override: Whether an admin forced the change
        override_reason: Admin's reason, when overriding
        created_at: When the change happened
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="status_transitions",
    )

    triggered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who triggered the change (null for system)",
    )

    previous_status = models.CharField(max_length=32, choices=OrderStatus.choices)
    new_status = models.CharField(max_length=32, choices=OrderStatus.choices)

    is_admin_override = models.BooleanField(default=False)
    override_reason = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name = "Order Status Transition"
        verbose_name_plural = "Order Status Transitions"

    def __str__(self) -> str:
        return f"{self.order_id}: {self.previous_status} -> {self.new_status}"
