"""
Notification service layer.

    NotificationService        create notifications, mark them read
    RefundNotificationService  refund and cancellation messages; the
                               default RefundNotifier of the refund workflow

A duplicate idempotency key is a ServiceResult failure, not an exception.
Email copies go out from a Celery task enqueued after commit.

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=user,
        notification_type=NotificationType.REFUND_CREDITED,
        title="Refund credited",
        body="12,500 XAF was added to your wallet.",
        send_email=True,
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction

from core.services import BaseService, ServiceResult

from notifications.models import Notification, NotificationType

if TYPE_CHECKING:
    from typing import Any


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a notification, optionally emailing it
    """

    @classmethod
    def create_notification(
        cls,
        recipient: Any,
        notification_type: NotificationType | str,
        title: str,
        body: str = "",
        data: dict | None = None,
        idempotency_key: str | None = None,
        send_email: bool = False,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        Args:
            recipient: User receiving the notification
            notification_type: Kind of notification
            title: Rendered title
            body: Rendered body
            data: JSON context
            idempotency_key: Optional key to prevent duplicate notifications
            send_email: Also email the notification (after commit)

        Returns:
            ServiceResult with created Notification if successful

        Error codes:
            DUPLICATE: Notification with this idempotency_key already exists
        """
        from notifications import tasks

        with transaction.atomic():
            if idempotency_key:
                existing = (
                    Notification.objects.select_for_update()
                    .filter(idempotency_key=idempotency_key)
                    .first()
                )
                if existing:
                    cls.get_logger().info(
                        f"Duplicate notification prevented: idempotency_key={idempotency_key}"
                    )
                    return ServiceResult.failure(
                        f"Notification with idempotency_key already exists: {idempotency_key}",
                        error_code="DUPLICATE",
                    )

            notification = Notification.objects.create(
                recipient=recipient,
                notification_type=notification_type,
                title=title,
                body=body,
                data=data or {},
                idempotency_key=idempotency_key,
            )

            if send_email:
                notification_id = str(notification.id)
                transaction.on_commit(
                    lambda: tasks.send_email_notification.delay(notification_id)
                )

        cls.get_logger().info(
            f"Notification {notification.id} ({notification_type}) created "
            f"for user {recipient.pk}"
        )
        return ServiceResult.success(notification)


class RefundNotificationService(BaseService):
    """
    Notifications about cancellations and refunds.

    Satisfies core.protocols.RefundNotifier.
    """

    @classmethod
    def notify_refund(
        cls,
        client: Any,
        amount: int,
        order: Any,
        *,
        refund_key: str | None = None,
    ) -> None:
        """
        Tell the client a refund is in their wallet.

        Creates an in-app notification and emails a copy. One notification
        per refund_key; without a key, one per order.
        """
        from wallets.types import format_amount

        display_amount = format_amount(amount, settings.WALLET_CURRENCY)
        NotificationService.create_notification(
            recipient=client,
            notification_type=NotificationType.REFUND_CREDITED,
            title="Refund credited",
            body=(
                f"{display_amount} for order {order.order_number} "
                "has been credited to your wallet."
            ),
            data={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "amount": amount,
                "transaction_id": refund_key,
            },
            idempotency_key=f"refund_credited:{refund_key or order.id}",
            send_email=True,
        )

    @classmethod
    def notify_order_cancelled(cls, order: Any) -> None:
        """
        Tell the tenant's cook that a client cancelled an order.

        Orders without a tenant or cook are skipped.
        """
        tenant = order.tenant
        cook = order.cook or (tenant.cook if tenant else None)
        if cook is None:
            cls.get_logger().info(
                f"No cook to notify for cancelled order {order.id}"
            )
            return

        NotificationService.create_notification(
            recipient=cook,
            notification_type=NotificationType.ORDER_CANCELLED,
            title="Order cancelled",
            body=f"Order {order.order_number} was cancelled by the client.",
            data={
                "order_id": str(order.id),
                "order_number": order.order_number,
            },
            idempotency_key=f"order_cancelled:{order.id}",
        )
