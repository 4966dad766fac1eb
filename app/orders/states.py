"""
State enum for the Order model.

Order lifecycle (as seen by this service):
    pending_payment → paid → confirmed → preparing → ready
        → out_for_delivery → delivered → completed
        → ready_for_pickup → picked_up → completed
    pending_payment → payment_failed
    paid/confirmed → cancelled → refunded

Only the cancellation and refund edges are driven from here; the
fulfilment edges belong to the order-management service that writes them.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    """
    Statuses for the Order model lifecycle.

    Terminal states: COMPLETED, REFUNDED, PAYMENT_FAILED

    Cancellation Flow:
        PAID → CANCELLED
        CONFIRMED → CANCELLED

    Refund Flow:
        CANCELLED → REFUNDED
    """

    PENDING_PAYMENT = "pending_payment", "Pending Payment"
    PAID = "paid", "Paid"
    CONFIRMED = "confirmed", "Confirmed"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for Delivery"
    READY_FOR_PICKUP = "ready_for_pickup", "Ready for Pickup"
    DELIVERED = "delivered", "Delivered"
    PICKED_UP = "picked_up", "Picked Up"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    PAYMENT_FAILED = "payment_failed", "Payment Failed"


# Statuses from which a client may still cancel
CANCELLABLE_STATUSES = (OrderStatus.PAID, OrderStatus.CONFIRMED)
