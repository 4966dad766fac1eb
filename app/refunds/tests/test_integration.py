"""
End-to-end tests for client cancellation and refund.

A client cancels a paid order; once the cancellation commits the refund
task runs (eagerly in tests) and settles both wallets.
"""

from django.core import mail

from activity.models import ActivityLog
from notifications.models import Notification, NotificationType
from orders.models import Order
from orders.services import OrderCancellationService, OrderStateTracker
from orders.states import OrderStatus
from orders.tests.factories import OrderFactory
from wallets.models import ReconciliationItem, Wallet
from wallets.services import LedgerService


class TestCancelAndRefund:
    """Cancellation through to refund."""

    def test_cancelled_order_is_refunded(
        self,
        client_user,
        tenant,
        cook,
        cook_wallet,
        django_capture_on_commit_callbacks,
    ):
        order = OrderFactory(client=client_user, tenant=tenant, status=OrderStatus.PAID)

        with django_capture_on_commit_callbacks(execute=True):
            result = OrderCancellationService.cancel_order(order, client_user)

        assert result.success

        order = Order.objects.get(pk=order.pk)
        assert order.status == OrderStatus.REFUNDED
        assert [
            (t.previous_status, t.new_status)
            for t in OrderStateTracker.get_transition_history(order)
        ] == [
            (OrderStatus.PAID, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.REFUNDED),
        ]

        client_wallet = Wallet.objects.get(owner=client_user, tenant=None)
        assert LedgerService.get_balance(client_wallet).withdrawable == 12500
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 27500
        assert not ReconciliationItem.objects.exists()

        assert [
            e.event for e in ActivityLog.objects.filter(subject_id=str(order.id))
        ] == ["order_cancelled_by_client", "refund_processed"]

        assert Notification.objects.get(
            notification_type=NotificationType.ORDER_CANCELLED
        ).recipient == cook
        refund_notice = Notification.objects.get(
            notification_type=NotificationType.REFUND_CREDITED
        )
        assert refund_notice.recipient == client_user
        assert [m.to for m in mail.outbox] == [[client_user.email]]
        assert "12,500 XAF" in mail.outbox[0].body

    def test_refund_with_underfunded_cook_is_flagged(
        self,
        client_user,
        tenant,
        cook,
        fund_cook_wallet,
        django_capture_on_commit_callbacks,
    ):
        fund_cook_wallet(cook, tenant, 4000)
        order = OrderFactory(client=client_user, tenant=tenant, status=OrderStatus.CONFIRMED)

        with django_capture_on_commit_callbacks(execute=True):
            OrderCancellationService.cancel_order(order, client_user)

        assert Order.objects.get(pk=order.pk).status == OrderStatus.REFUNDED
        client_wallet = Wallet.objects.get(owner=client_user, tenant=None)
        assert client_wallet.withdrawable_balance == 12500
        item = ReconciliationItem.objects.get()
        assert item.error_code == "INSUFFICIENT_BALANCE"
        assert item.reference_id == str(order.id)
