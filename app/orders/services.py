"""
Order service layer.

Services:
    OrderStateTracker: Validated, recorded status changes
    OrderCancellationService: Client cancellation of paid orders

Every status change this service makes goes through a django-fsm
transition on Order, appends one OrderStatusTransition row and, unless
the caller opts out, one "status_changed" activity record.

Usage:
    from orders.services import OrderStateTracker
    from orders.states import OrderStatus

    OrderStateTracker.transition(order, OrderStatus.REFUNDED, emit_audit=False)
    history = OrderStateTracker.get_transition_history(order)
"""

from __future__ import annotations

from datetime import timedelta
from functools import partial
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django_fsm import can_proceed

from core.services import BaseService, ServiceResult

from orders.exceptions import InvalidTransition
from orders.models import Order, OrderStatusTransition
from orders.states import CANCELLABLE_STATUSES, OrderStatus

if TYPE_CHECKING:
    from typing import Any

    from core.protocols import AuditSink

# target status -> (Order transition method, timestamp field it sets)
OWNED_TRANSITIONS = {
    OrderStatus.CANCELLED: ("cancel", "cancelled_at"),
    OrderStatus.REFUNDED: ("mark_refunded", "refunded_at"),
}


def default_audit_sink() -> AuditSink:
    from activity.services import ActivityLogService

    return ActivityLogService()


class OrderStateTracker(BaseService):
    """
    Moves orders between statuses and keeps their transition history.

    Only the cancellation edges (paid/confirmed -> cancelled) and the
    refund edge (cancelled -> refunded) are driven from this service.
    """

    @classmethod
    def transition(
        cls,
        order: Order,
        new_status: OrderStatus | str,
        *,
        triggered_by: Any | None = None,
        emit_audit: bool = True,
        audit_sink: AuditSink | None = None,
    ) -> OrderStatusTransition:
        """
        Change an order's status.

        Args:
            order: Order to change; its in-memory status is the source
                status, so callers that need a consistent read should pass
                a row locked with select_for_update()
            new_status: Target status
            triggered_by: User causing the change; None for the system
            emit_audit: Write a generic "status_changed" activity record.
                Callers that write their own curated record pass False.
            audit_sink: AuditSink to write to (default: activity log)

        Returns:
            The appended OrderStatusTransition

        Raises:
            InvalidTransition: If the edge is not allowed from the
                order's current status
        """
        previous_status = order.status
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise InvalidTransition(order.id, previous_status, str(new_status))

        method_name, timestamp_field = OWNED_TRANSITIONS.get(target, (None, None))
        method = getattr(order, method_name) if method_name else None
        if method is None or not can_proceed(method):
            raise InvalidTransition(order.id, previous_status, target)

        with transaction.atomic():
            method()
            order.save(update_fields=["status", timestamp_field, "updated_at"])

            record = OrderStatusTransition.objects.create(
                order=order,
                triggered_by=triggered_by,
                previous_status=previous_status,
                new_status=target,
                is_admin_override=False,
            )

            if emit_audit:
                (audit_sink or default_audit_sink()).record(
                    "orders",
                    order,
                    triggered_by,
                    "status_changed",
                    {
                        "old": {"status": previous_status},
                        "attributes": {"status": target.value},
                    },
                )

        cls.get_logger().info(
            f"Order {order.id} moved from {previous_status} to {target}",
            extra={
                "order_id": str(order.id),
                "previous_status": previous_status,
                "new_status": target.value,
            },
        )
        return record

    @classmethod
    def mark_refunded(cls, order: Order, **kwargs: Any) -> OrderStatusTransition:
        """Shortcut for the cancelled -> refunded edge."""
        return cls.transition(order, OrderStatus.REFUNDED, **kwargs)

    @staticmethod
    def get_transition_history(order: Order) -> list[OrderStatusTransition]:
        """Transitions of an order, oldest first."""
        return list(
            OrderStatusTransition.objects.filter(order=order).order_by(
                "created_at", "id"
            )
        )


class OrderCancellationService(BaseService):
    """
    Client-initiated cancellation.

    A client may cancel their own order while it is paid or confirmed and
    the tenant's cancellation window (counted from when the order was
    placed) is still open. A successful cancellation schedules the refund
    task once the transaction commits.
    """

    @staticmethod
    def get_cancellation_window_minutes(order: Order) -> int:
        tenant = order.tenant
        if tenant is not None and tenant.cancellation_window_minutes is not None:
            return tenant.cancellation_window_minutes
        return settings.ORDER_CANCELLATION_WINDOW_MINUTES

    @classmethod
    def can_cancel(cls, order: Order) -> bool:
        """Whether the order's status and window still allow cancellation."""
        if order.status not in CANCELLABLE_STATUSES:
            return False
        deadline = order.created_at + timedelta(
            minutes=cls.get_cancellation_window_minutes(order)
        )
        return timezone.now() <= deadline

    @classmethod
    def cancel_order(
        cls,
        order: Order,
        client: Any,
        audit_sink: AuditSink | None = None,
    ) -> ServiceResult[Order]:
        """
        Cancel an order on behalf of its client.

        Status and window are checked, then re-checked against the row
        locked with SELECT ... FOR UPDATE.

        Args:
            order: Order to cancel
            client: User requesting the cancellation
            audit_sink: AuditSink to write to (default: activity log)

        Returns:
            ServiceResult with the cancelled Order

        Error codes:
            NOT_OWNER: The user did not place this order
            INVALID_STATUS: The order is past the cancellable statuses
            WINDOW_EXPIRED: The cancellation window has closed
            NOT_FOUND: The order no longer exists
        """
        from refunds.tasks import enqueue_order_refund

        if order.client_id != client.pk:
            return ServiceResult.failure(
                "You can only cancel your own orders",
                error_code="NOT_OWNER",
            )

        failure = cls._check_cancellable(order)
        if failure is not None:
            return failure

        sink = audit_sink or default_audit_sink()

        with cls.atomic():
            fresh = Order.objects.select_for_update().filter(pk=order.pk).first()
            if fresh is None:
                return ServiceResult.failure("Order not found", error_code="NOT_FOUND")

            failure = cls._check_cancellable(fresh)
            if failure is not None:
                return failure

            previous_status = fresh.status
            try:
                OrderStateTracker.transition(
                    fresh,
                    OrderStatus.CANCELLED,
                    triggered_by=client,
                    emit_audit=False,
                )
            except InvalidTransition as exc:
                return ServiceResult.from_error(exc)
            sink.record(
                "orders",
                fresh,
                client,
                "order_cancelled_by_client",
                {
                    "old": {"status": previous_status},
                    "attributes": {
                        "status": OrderStatus.CANCELLED.value,
                        "cancelled_at": fresh.cancelled_at.isoformat(),
                    },
                },
            )

            enqueue_order_refund(fresh.id, client.pk)
            transaction.on_commit(partial(cls._notify_cook, fresh))

        cls.get_logger().info(
            f"Order {fresh.id} cancelled by client {client.pk}",
            extra={
                "order_id": str(fresh.id),
                "order_number": fresh.order_number,
                "client_id": client.pk,
                "grand_total": fresh.grand_total,
            },
        )
        return ServiceResult.success(fresh)

    @classmethod
    def _check_cancellable(cls, order: Order) -> ServiceResult[Order] | None:
        if order.status not in CANCELLABLE_STATUSES:
            return ServiceResult.failure(
                "This order cannot be cancelled. It may have already been "
                "confirmed or prepared.",
                error_code="INVALID_STATUS",
                details={"status": order.status},
            )
        if not cls.can_cancel(order):
            return ServiceResult.failure(
                "The cancellation window for this order has expired.",
                error_code="WINDOW_EXPIRED",
                details={
                    "window_minutes": cls.get_cancellation_window_minutes(order)
                },
            )
        return None

    @classmethod
    def _notify_cook(cls, order: Order) -> None:
        from notifications.services import RefundNotificationService

        try:
            RefundNotificationService.notify_order_cancelled(order)
        except Exception:
            cls.get_logger().exception(
                f"Cancellation notification failed for order {order.id}"
            )
