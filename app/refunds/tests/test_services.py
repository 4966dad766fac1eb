"""
Tests for OrderRefundWorkflow.

Covers the refund of a cancelled order end to end against the database:
the client credit, the cook debit and its isolation, the status change,
the audit record, and the outcomes for orders that cannot be refunded.
"""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from unittest.mock import MagicMock, patch

import pytest
from django.db import DatabaseError, connection

from activity.models import ActivityLog
from core.tests.factories import UserFactory
from orders.models import Order, OrderStatusTransition
from orders.states import OrderStatus
from orders.tests.factories import CancelledOrderFactory, OrderFactory
from refunds.lookups import DatabaseEntityLookup
from refunds.services import OrderRefundWorkflow, RefundOutcome, RefundOutcomeStatus
from tenants.tests.factories import TenantFactory
from wallets.models import (
    BalanceType,
    DeductionSource,
    PendingDeduction,
    ReconciliationItem,
    TransactionType,
    Wallet,
    WalletTransaction,
)
from wallets.services import CookWalletService, LedgerService


def client_wallet_of(user):
    return Wallet.objects.get(owner=user, tenant=None)


class StaleOrderLookup(DatabaseEntityLookup):
    """Returns a fixed, possibly outdated, order from the unlocked read."""

    def __init__(self, stale_order):
        self.stale_order = stale_order

    def get_order(self, order_id):
        return self.stale_order


class FailingTenantLookup(DatabaseEntityLookup):
    """Raises a database error when the tenant is read."""

    def get_tenant(self, tenant_id):
        raise DatabaseError("tenant read failed")


class FailingCookLookup(DatabaseEntityLookup):
    """Raises a database error when the cook is read; other users load."""

    def __init__(self, cook_id):
        self.cook_id = cook_id

    def get_user(self, user_id):
        if user_id == self.cook_id:
            raise DatabaseError("user read failed")
        return super().get_user(user_id)


# =============================================================================
# Successful Refunds
# =============================================================================


class TestProcessRefund:
    """Tests for a refundable cancelled order."""

    def test_refunds_client_and_reverses_cook_earnings(
        self, cancelled_order, client_user, cook_wallet, notifier
    ):
        """A 12,500 refund credits the client and takes it back from the cook."""
        outcome = OrderRefundWorkflow(notifier=notifier).process_refund(
            cancelled_order.id, client_user.pk
        )

        assert outcome.status == RefundOutcomeStatus.REFUNDED
        assert outcome.refunded is True
        assert outcome.amount == 12500
        assert outcome.cook_adjustment_error is None

        client_wallet = client_wallet_of(client_user)
        assert client_wallet.withdrawable_balance == 12500
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 27500
        assert cook_wallet.withdrawable_balance == 0

        assert outcome.client_transaction.wallet_id == client_wallet.id
        assert outcome.client_transaction.transaction_type == TransactionType.REFUND
        assert outcome.cook_transaction.wallet_id == cook_wallet.id
        assert (
            outcome.cook_transaction.transaction_type
            == TransactionType.ORDER_CANCELLED
        )
        assert outcome.cook_transaction.balance_type == BalanceType.UNWITHDRAWABLE

        assert LedgerService.verify_wallet(client_wallet)
        assert LedgerService.verify_wallet(cook_wallet)

    def test_moves_order_to_refunded(self, cancelled_order, client_user, cook_wallet):
        """The order is refunded with one system-triggered transition."""
        OrderRefundWorkflow().process_refund(cancelled_order.id, client_user.pk)

        order = Order.objects.get(pk=cancelled_order.pk)
        assert order.status == OrderStatus.REFUNDED
        assert order.refunded_at is not None

        [record] = OrderStatusTransition.objects.filter(order=order)
        assert record.previous_status == OrderStatus.CANCELLED
        assert record.new_status == OrderStatus.REFUNDED
        assert record.triggered_by is None

    def test_writes_single_refund_processed_record(
        self, cancelled_order, client_user, cook_wallet
    ):
        """Exactly one curated audit record, and no generic status_changed."""
        OrderRefundWorkflow().process_refund(cancelled_order.id, client_user.pk)

        entries = list(ActivityLog.objects.filter(subject_id=str(cancelled_order.id)))
        assert [e.event for e in entries] == ["refund_processed"]
        entry = entries[0]
        assert entry.log_name == "orders"
        assert entry.causer == client_user
        assert entry.properties["old"] == {"status": "cancelled"}
        assert entry.properties["attributes"]["status"] == "refunded"
        assert entry.properties["attributes"]["refunded_at"]
        assert entry.properties["refund_amount"] == 12500
        assert entry.properties["currency"] == "XAF"

    def test_all_money_movement_references_the_order(
        self, cancelled_order, client_user, cook_wallet
    ):
        OrderRefundWorkflow().process_refund(cancelled_order.id, client_user.pk)

        txns = LedgerService.get_transactions_by_reference("order", cancelled_order.id)

        assert sorted(t.transaction_type for t in txns) == [
            TransactionType.ORDER_CANCELLED,
            TransactionType.REFUND,
        ]

    def test_client_notified_after_commit(
        self,
        cancelled_order,
        client_user,
        cook_wallet,
        notifier,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            OrderRefundWorkflow(notifier=notifier).process_refund(
                cancelled_order.id, client_user.pk
            )
            notifier.notify_refund.assert_not_called()

        notifier.notify_refund.assert_called_once()
        client, amount, order = notifier.notify_refund.call_args.args
        assert client == client_user
        assert amount == 12500
        assert order.id == cancelled_order.id

    def test_assigned_cook_is_charged_instead_of_tenant_cook(
        self, cancelled_order, client_user, tenant, cook_wallet, fund_cook_wallet
    ):
        """An order's own cook takes precedence over the tenant's cook."""
        assigned = UserFactory()
        assigned_wallet = fund_cook_wallet(assigned, tenant, 20000)
        Order.objects.filter(pk=cancelled_order.pk).update(cook=assigned)

        outcome = OrderRefundWorkflow().process_refund(cancelled_order.id, client_user.pk)

        assigned_wallet.refresh_from_db()
        cook_wallet.refresh_from_db()
        assert outcome.cook_transaction.wallet_id == assigned_wallet.id
        assert assigned_wallet.unwithdrawable_balance == 7500
        assert cook_wallet.unwithdrawable_balance == 40000

    def test_accepts_string_identifiers(self, cancelled_order, client_user, cook_wallet):
        """Task payloads carry identifiers as strings."""
        outcome = OrderRefundWorkflow().process_refund(
            str(cancelled_order.id), str(client_user.pk)
        )

        assert outcome.refunded

    def test_zero_total_order(self, client_user, tenant, cook_wallet, notifier):
        """Nothing to move: no wallet activity, but the order is still refunded."""
        order = CancelledOrderFactory(
            client=client_user, tenant=tenant, subtotal=0, delivery_fee=0
        )

        outcome = OrderRefundWorkflow(notifier=notifier).process_refund(
            order.id, client_user.pk
        )

        assert outcome.status == RefundOutcomeStatus.REFUNDED
        assert outcome.amount == 0
        assert outcome.client_transaction is None
        assert Order.objects.get(pk=order.pk).status == OrderStatus.REFUNDED
        assert not WalletTransaction.objects.filter(reference_id=str(order.id)).exists()
        assert ActivityLog.objects.filter(event="refund_processed").count() == 1
        notifier.notify_refund.assert_not_called()


# =============================================================================
# Idempotency and Concurrency
# =============================================================================


class TestRefundIdempotency:
    """Running the workflow more than once for the same order."""

    def test_second_run_is_a_no_op(
        self,
        cancelled_order,
        client_user,
        cook_wallet,
        notifier,
        django_capture_on_commit_callbacks,
    ):
        workflow = OrderRefundWorkflow(notifier=notifier)

        with django_capture_on_commit_callbacks(execute=True):
            first = workflow.process_refund(cancelled_order.id, client_user.pk)
        with django_capture_on_commit_callbacks(execute=True):
            second = workflow.process_refund(cancelled_order.id, client_user.pk)

        assert first.status == RefundOutcomeStatus.REFUNDED
        assert second.status == RefundOutcomeStatus.ALREADY_REFUNDED
        assert client_wallet_of(client_user).withdrawable_balance == 12500
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 27500
        assert WalletTransaction.objects.filter(
            transaction_type=TransactionType.REFUND
        ).count() == 1
        assert ActivityLog.objects.filter(event="refund_processed").count() == 1
        assert notifier.notify_refund.call_count == 1

    def test_refund_completed_by_another_worker(
        self, cancelled_order, client_user, cook_wallet
    ):
        """The locked re-check catches a refund made after the first read."""
        stale = Order.objects.get(pk=cancelled_order.pk)
        Order.objects.filter(pk=cancelled_order.pk).update(status=OrderStatus.REFUNDED)

        outcome = OrderRefundWorkflow(lookup=StaleOrderLookup(stale)).process_refund(
            cancelled_order.id, client_user.pk
        )

        assert outcome.status == RefundOutcomeStatus.ALREADY_REFUNDED
        assert not Wallet.objects.filter(owner=client_user).exists()
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 40000
        assert not ActivityLog.objects.filter(event="refund_processed").exists()


class BarrierOrderLookup(DatabaseEntityLookup):
    """Holds each worker after its unlocked read until all workers have read."""

    def __init__(self, barrier):
        self.barrier = barrier

    def get_order(self, order_id):
        order = super().get_order(order_id)
        self.barrier.wait(timeout=10)
        return order


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(
    connection.vendor != "postgresql",
    reason="SELECT ... FOR UPDATE needs PostgreSQL",
)
class TestConcurrentRefunds:
    """
    Two workers refunding the same order at once.

    Both read the order as cancelled before either takes the row lock, so
    only the locked re-check stands between them and a double refund.
    """

    def test_one_worker_refunds(
        self, cancelled_order, client_user, cook_wallet, notifier
    ):
        """Should credit the client once; the other run finds it refunded."""
        lookup = BarrierOrderLookup(threading.Barrier(2))

        def refund():
            try:
                return OrderRefundWorkflow(
                    lookup=lookup, notifier=notifier
                ).process_refund(cancelled_order.id, client_user.pk)
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = [executor.submit(refund) for _ in range(2)]
            outcomes = [future.result() for future in as_completed(futures)]

        assert sorted(outcome.status for outcome in outcomes) == [
            RefundOutcomeStatus.ALREADY_REFUNDED,
            RefundOutcomeStatus.REFUNDED,
        ]
        assert WalletTransaction.objects.filter(
            transaction_type=TransactionType.REFUND
        ).count() == 1
        assert client_wallet_of(client_user).withdrawable_balance == 12500
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 27500
        assert ActivityLog.objects.filter(event="refund_processed").count() == 1
        assert notifier.notify_refund.call_count == 1


# =============================================================================
# Orders That Cannot Be Refunded
# =============================================================================


class TestRefundSkipped:
    """Outcomes that leave every balance untouched."""

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PAID, OrderStatus.PREPARING, OrderStatus.COMPLETED],
    )
    def test_order_not_cancelled(self, client_user, tenant, cook_wallet, status):
        order = OrderFactory(client=client_user, tenant=tenant, status=status)

        outcome = OrderRefundWorkflow().process_refund(order.id, client_user.pk)

        assert outcome.status == RefundOutcomeStatus.WRONG_STATE
        assert outcome.amount == 0
        assert Order.objects.get(pk=order.pk).status == status
        assert not Wallet.objects.filter(owner=client_user).exists()

    @pytest.mark.parametrize("order_id", [uuid.uuid4(), "not-a-uuid", None])
    def test_order_not_found(self, client_user, order_id):
        outcome = OrderRefundWorkflow().process_refund(order_id, client_user.pk)

        assert outcome.status == RefundOutcomeStatus.ORDER_NOT_FOUND
        assert not Wallet.objects.exists()

    @pytest.mark.parametrize("client_id", [987654, "nobody", None])
    def test_client_not_found(self, cancelled_order, cook_wallet, client_id):
        outcome = OrderRefundWorkflow().process_refund(cancelled_order.id, client_id)

        assert outcome.status == RefundOutcomeStatus.CLIENT_NOT_FOUND
        assert Order.objects.get(pk=cancelled_order.pk).status == OrderStatus.CANCELLED
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 40000


# =============================================================================
# Cook Adjustment Failures
# =============================================================================


class TestCookAdjustmentFailures:
    """The client is refunded even when the cook cannot be charged."""

    def assert_client_refunded(self, order, client_user):
        assert client_wallet_of(client_user).withdrawable_balance == 12500
        assert Order.objects.get(pk=order.pk).status == OrderStatus.REFUNDED
        assert ActivityLog.objects.filter(event="refund_processed").count() == 1

    def test_insufficient_unwithdrawable_balance(
        self, cancelled_order, client_user, cook, tenant, fund_cook_wallet
    ):
        """A cook holding 4,000 cannot give back 12,500; an item is flagged."""
        wallet = fund_cook_wallet(cook, tenant, 4000)

        outcome = OrderRefundWorkflow().process_refund(cancelled_order.id, client_user.pk)

        assert outcome.status == RefundOutcomeStatus.REFUNDED
        assert outcome.cook_transaction is None
        assert outcome.cook_adjustment_error == "INSUFFICIENT_BALANCE"
        self.assert_client_refunded(cancelled_order, client_user)
        wallet.refresh_from_db()
        assert wallet.unwithdrawable_balance == 4000

        item = ReconciliationItem.objects.get()
        assert item.wallet == wallet
        assert item.reference_type == "order"
        assert item.reference_id == str(cancelled_order.id)
        assert item.amount == 12500
        assert item.error_code == "INSUFFICIENT_BALANCE"
        assert item.details["available"] == 4000
        assert item.resolved is False

    def test_shortfall_after_payout_becomes_pending_deduction(
        self, cancelled_order, client_user, cook, tenant, fund_cook_wallet
    ):
        """A cook who already withdrew the order earnings owes them back later."""
        wallet = fund_cook_wallet(cook, tenant, 0)
        LedgerService.credit(
            wallet,
            12500,
            TransactionType.PAYMENT_CREDIT,
            balance_type=BalanceType.WITHDRAWABLE,
            reference_type="order",
            reference_id=cancelled_order.id,
        )
        LedgerService.debit(
            wallet,
            12500,
            TransactionType.WITHDRAWAL,
            balance_type=BalanceType.WITHDRAWABLE,
        )

        outcome = OrderRefundWorkflow().process_refund(cancelled_order.id, client_user.pk)

        assert outcome.cook_adjustment_error == "INSUFFICIENT_BALANCE"
        self.assert_client_refunded(cancelled_order, client_user)

        deduction = PendingDeduction.objects.get()
        assert deduction.wallet == wallet
        assert deduction.order_id == cancelled_order.id
        assert deduction.original_amount == 12500
        assert deduction.source == DeductionSource.CANCELLATION_REFUND
        item = ReconciliationItem.objects.get()
        assert item.details["pending_deduction_id"] == str(deduction.id)

    def test_shortfall_without_payout_has_no_pending_deduction(
        self, cancelled_order, client_user, cook, tenant, fund_cook_wallet
    ):
        fund_cook_wallet(cook, tenant, 4000)

        OrderRefundWorkflow().process_refund(cancelled_order.id, client_user.pk)

        assert not PendingDeduction.objects.exists()
        assert "pending_deduction_id" not in ReconciliationItem.objects.get().details

    def test_pending_deduction_failure_still_flags_item(
        self, cancelled_order, client_user, cook, tenant, fund_cook_wallet
    ):
        """A failing deduction write leaves the refund and the item in place."""
        fund_cook_wallet(cook, tenant, 4000)

        with patch(
            "wallets.services.PendingDeductionService.record_for_refund",
            side_effect=DatabaseError("deduction write failed"),
        ):
            outcome = OrderRefundWorkflow().process_refund(
                cancelled_order.id, client_user.pk
            )

        assert outcome.cook_adjustment_error == "INSUFFICIENT_BALANCE"
        self.assert_client_refunded(cancelled_order, client_user)
        assert ReconciliationItem.objects.get().error_code == "INSUFFICIENT_BALANCE"

    def test_cook_without_wallet_gets_one_and_is_flagged(
        self, cancelled_order, client_user, cook
    ):
        """A missing cook wallet is created empty, so the debit is flagged."""
        outcome = OrderRefundWorkflow().process_refund(cancelled_order.id, client_user.pk)

        assert outcome.cook_adjustment_error == "INSUFFICIENT_BALANCE"
        self.assert_client_refunded(cancelled_order, client_user)
        wallet = Wallet.objects.get(owner=cook, tenant=cancelled_order.tenant)
        assert ReconciliationItem.objects.get().wallet == wallet

    def test_order_without_tenant(self, client_user):
        order = CancelledOrderFactory(client=client_user, tenant=None)

        outcome = OrderRefundWorkflow().process_refund(order.id, client_user.pk)

        assert outcome.cook_adjustment_error == "TENANT_NOT_FOUND"
        self.assert_client_refunded(order, client_user)
        item = ReconciliationItem.objects.get()
        assert item.wallet is None
        assert item.reference_id == str(order.id)

    def test_tenant_without_cook(self, client_user):
        order = CancelledOrderFactory(client=client_user, tenant=TenantFactory(cook=None))

        outcome = OrderRefundWorkflow().process_refund(order.id, client_user.pk)

        assert outcome.cook_adjustment_error == "COOK_NOT_FOUND"
        self.assert_client_refunded(order, client_user)
        assert ReconciliationItem.objects.get().error_code == "COOK_NOT_FOUND"

    def test_database_error_in_cook_step_is_isolated(
        self, cancelled_order, client_user, cook_wallet
    ):
        """A failure inside the cook savepoint does not undo the client refund."""
        with patch.object(
            CookWalletService,
            "decrement_for_cancellation",
            side_effect=DatabaseError("deadlock detected"),
        ):
            outcome = OrderRefundWorkflow().process_refund(
                cancelled_order.id, client_user.pk
            )

        assert outcome.cook_adjustment_error == "DatabaseError"
        self.assert_client_refunded(cancelled_order, client_user)
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 40000
        item = ReconciliationItem.objects.get()
        assert item.wallet == cook_wallet
        assert item.details == {"error": "deadlock detected"}

    def test_tenant_lookup_error_is_isolated(
        self, cancelled_order, client_user, cook_wallet
    ):
        """A tenant read that raises is flagged; the client keeps the refund."""
        workflow = OrderRefundWorkflow(lookup=FailingTenantLookup())

        outcome = workflow.process_refund(cancelled_order.id, client_user.pk)

        assert outcome.status == RefundOutcomeStatus.REFUNDED
        assert outcome.cook_transaction is None
        assert outcome.cook_adjustment_error == "DatabaseError"
        self.assert_client_refunded(cancelled_order, client_user)
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 40000
        item = ReconciliationItem.objects.get()
        assert item.wallet is None
        assert item.reference_id == str(cancelled_order.id)
        assert item.details == {"error": "tenant read failed"}

    def test_cook_lookup_error_is_isolated(
        self, cancelled_order, client_user, cook, cook_wallet
    ):
        """A cook read that raises is flagged; the client keeps the refund."""
        workflow = OrderRefundWorkflow(lookup=FailingCookLookup(cook.pk))

        outcome = workflow.process_refund(cancelled_order.id, client_user.pk)

        assert outcome.cook_adjustment_error == "DatabaseError"
        self.assert_client_refunded(cancelled_order, client_user)
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 40000
        assert ReconciliationItem.objects.get().details == {
            "error": "user read failed"
        }


# =============================================================================
# Failures That Roll Back the Refund
# =============================================================================


class TestRefundRollback:
    """Failures outside the cook step leave no trace."""

    def assert_nothing_written(self, order, client_user, cook_wallet):
        assert Order.objects.get(pk=order.pk).status == OrderStatus.CANCELLED
        assert not OrderStatusTransition.objects.filter(order=order).exists()
        assert not Wallet.objects.filter(owner=client_user).exists()
        cook_wallet.refresh_from_db()
        assert cook_wallet.unwithdrawable_balance == 40000
        assert not WalletTransaction.objects.filter(
            reference_id=str(order.id)
        ).exists()
        assert not ReconciliationItem.objects.exists()

    def test_audit_failure_rolls_back_everything(
        self,
        cancelled_order,
        client_user,
        cook_wallet,
        notifier,
        django_capture_on_commit_callbacks,
    ):
        audit_sink = MagicMock()
        audit_sink.record.side_effect = RuntimeError("audit store unavailable")
        workflow = OrderRefundWorkflow(notifier=notifier, audit_sink=audit_sink)

        with django_capture_on_commit_callbacks(execute=True):
            with pytest.raises(RuntimeError):
                workflow.process_refund(cancelled_order.id, client_user.pk)

        self.assert_nothing_written(cancelled_order, client_user, cook_wallet)
        notifier.notify_refund.assert_not_called()

    def test_database_error_on_client_credit_propagates(
        self, cancelled_order, client_user, cook_wallet
    ):
        """Infrastructure errors are raised for the task to retry."""
        refund_service = MagicMock()
        refund_service.credit_cancellation_refund.side_effect = DatabaseError(
            "connection lost"
        )
        workflow = OrderRefundWorkflow(refund_service=refund_service)

        with pytest.raises(DatabaseError):
            workflow.process_refund(cancelled_order.id, client_user.pk)

        self.assert_nothing_written(cancelled_order, client_user, cook_wallet)


# =============================================================================
# RefundOutcome
# =============================================================================


class TestRefundOutcome:
    """Tests for RefundOutcome."""

    def test_to_dict_for_skipped_outcome(self):
        order_id = uuid.uuid4()

        assert RefundOutcome(RefundOutcomeStatus.WRONG_STATE, order_id).to_dict() == {
            "status": "wrong_state",
            "order_id": str(order_id),
            "amount": 0,
            "client_transaction_id": None,
            "cook_transaction_id": None,
            "cook_adjustment_error": None,
        }

    def test_refunded_flag(self):
        assert RefundOutcome(RefundOutcomeStatus.REFUNDED, uuid.uuid4()).refunded
        assert not RefundOutcome(
            RefundOutcomeStatus.ALREADY_REFUNDED, uuid.uuid4()
        ).refunded
