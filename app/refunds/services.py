"""
Order refund workflow.

OrderRefundWorkflow reverses the money movement of a cancelled order in a
single database transaction:

    1. credit the order's grand total to the client's withdrawable balance
    2. take the same amount back from the cook's unwithdrawable balance
    3. move the order from cancelled to refunded
    4. write one "refund_processed" activity record

Step 2 runs in savepoints, the tenant and cook lookups included. If it
fails (no tenant or cook to charge, a lookup that raises, insufficient
balance, a database error) the failure is logged and recorded as a
ReconciliationItem; the client is still refunded. A shortfall on a cook
who already withdrew the order earnings is also recorded as a
PendingDeduction against future earnings. Any other failure rolls the
whole unit back.

The workflow is safe to run more than once for the same order: an order
that is already refunded is left alone, and the status check is repeated
against the locked order row.

Usage:
    from refunds.services import OrderRefundWorkflow

    outcome = OrderRefundWorkflow().process_refund(order_id, client_id)
    if outcome.status == RefundOutcomeStatus.REFUNDED:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models, transaction

from core.services import BaseService

from orders.services import OrderStateTracker
from orders.states import OrderStatus
from wallets.exceptions import InsufficientBalance
from wallets.services import CookWalletService, ReconciliationService, WalletRefundService

if TYPE_CHECKING:
    from typing import Any

    from core.protocols import AuditSink, EntityLookup, RefundNotifier
    from orders.models import Order
    from wallets.models import Wallet, WalletTransaction


class RefundOutcomeStatus(models.TextChoices):
    """How a refund attempt ended."""

    REFUNDED = "refunded", "Refunded"
    ALREADY_REFUNDED = "already_refunded", "Already Refunded"
    WRONG_STATE = "wrong_state", "Wrong State"
    ORDER_NOT_FOUND = "order_not_found", "Order Not Found"
    CLIENT_NOT_FOUND = "client_not_found", "Client Not Found"


@dataclass
class RefundOutcome:
    """
    Result of OrderRefundWorkflow.process_refund.

    Attributes:
        status: How the attempt ended
        order_id: Order the attempt was for
        amount: Amount refunded (0 unless status is REFUNDED)
        client_transaction: The client's refund credit, if any
        cook_transaction: The cook's order_cancelled debit, if any
        cook_adjustment_error: Error code when the cook debit could not be
            applied and was flagged for reconciliation
    """

    status: RefundOutcomeStatus
    order_id: Any
    amount: int = 0
    client_transaction: WalletTransaction | None = None
    cook_transaction: WalletTransaction | None = None
    cook_adjustment_error: str | None = None

    @property
    def refunded(self) -> bool:
        return self.status == RefundOutcomeStatus.REFUNDED

    def to_dict(self) -> dict[str, Any]:
        """Plain representation, used as the Celery task result."""
        return {
            "status": self.status.value,
            "order_id": str(self.order_id),
            "amount": self.amount,
            "client_transaction_id": (
                str(self.client_transaction.id) if self.client_transaction else None
            ),
            "cook_transaction_id": (
                str(self.cook_transaction.id) if self.cook_transaction else None
            ),
            "cook_adjustment_error": self.cook_adjustment_error,
        }


class OrderRefundWorkflow(BaseService):
    """
    Refunds a cancelled order.

    Collaborators are injected; each defaults to the database-backed
    implementation.

    Args:
        lookup: EntityLookup (default: refunds.lookups.DatabaseEntityLookup)
        notifier: RefundNotifier for the client (default:
            notifications.services.RefundNotificationService)
        audit_sink: AuditSink (default: activity.services.ActivityLogService)
        refund_service: WalletRefundService crediting the client (default:
            built from notifier and audit_sink)
    """

    def __init__(
        self,
        lookup: EntityLookup | None = None,
        notifier: RefundNotifier | None = None,
        audit_sink: AuditSink | None = None,
        refund_service: WalletRefundService | None = None,
    ):
        if lookup is None:
            from refunds.lookups import DatabaseEntityLookup

            lookup = DatabaseEntityLookup()
        if audit_sink is None:
            from activity.services import ActivityLogService

            audit_sink = ActivityLogService()
        self.lookup = lookup
        self.audit_sink = audit_sink
        self.refund_service = refund_service or WalletRefundService(
            notifier=notifier,
            audit_sink=audit_sink,
        )

    def process_refund(self, order_id: Any, client_id: Any) -> RefundOutcome:
        """
        Refund a cancelled order to its client.

        Args:
            order_id: Order to refund
            client_id: User to credit

        Returns:
            RefundOutcome; missing entities and orders in the wrong status
            are outcomes, not exceptions

        Raises:
            django.db.DatabaseError: Infrastructure failures (retryable)
            InvalidAmount, InvalidTransition: Data errors that a retry
                will not fix
        """
        logger = self.get_logger()

        order = self.lookup.get_order(order_id)
        if order is None:
            logger.error(
                "Refund skipped: order not found",
                extra={"order_id": str(order_id), "client_id": client_id},
            )
            return RefundOutcome(RefundOutcomeStatus.ORDER_NOT_FOUND, order_id)

        skipped = self._check_refundable(order)
        if skipped is not None:
            return skipped

        client = self.lookup.get_user(client_id)
        if client is None:
            logger.error(
                "Refund skipped: client not found",
                extra={"order_id": str(order.id), "client_id": client_id},
            )
            return RefundOutcome(RefundOutcomeStatus.CLIENT_NOT_FOUND, order.id)

        amount = order.grand_total

        with transaction.atomic():
            locked = self.lookup.get_order_for_update(order.id)
            if locked is None:
                logger.error(
                    "Refund skipped: order disappeared before it could be locked",
                    extra={"order_id": str(order.id)},
                )
                return RefundOutcome(RefundOutcomeStatus.ORDER_NOT_FOUND, order.id)

            # Another worker may have refunded it since the first read
            skipped = self._check_refundable(locked)
            if skipped is not None:
                return skipped

            client_transaction = None
            cook_transaction = None
            cook_error = None
            if amount > 0:
                credit = self.refund_service.credit_cancellation_refund(
                    client, amount, locked
                )
                client_transaction = credit.transaction
                cook_transaction, cook_error = self._reverse_cook_earnings(
                    locked, amount
                )

            previous_status = locked.status
            OrderStateTracker.transition(
                locked,
                OrderStatus.REFUNDED,
                emit_audit=False,
            )
            self.audit_sink.record(
                "orders",
                locked,
                client,
                "refund_processed",
                {
                    "old": {"status": previous_status},
                    "attributes": {
                        "status": OrderStatus.REFUNDED.value,
                        "refunded_at": locked.refunded_at.isoformat(),
                    },
                    "refund_amount": amount,
                    "currency": settings.WALLET_CURRENCY.upper(),
                },
            )

        logger.info(
            "Order refund processed",
            extra={
                "order_id": str(locked.id),
                "order_number": locked.order_number,
                "refund_amount": amount,
                "client_id": client.pk,
                "cook_adjustment_error": cook_error,
            },
        )
        return RefundOutcome(
            RefundOutcomeStatus.REFUNDED,
            locked.id,
            amount=amount,
            client_transaction=client_transaction,
            cook_transaction=cook_transaction,
            cook_adjustment_error=cook_error,
        )

    def _check_refundable(self, order: Order) -> RefundOutcome | None:
        if order.status == OrderStatus.REFUNDED:
            self.get_logger().info(
                "Refund skipped: order already refunded",
                extra={"order_id": str(order.id)},
            )
            return RefundOutcome(RefundOutcomeStatus.ALREADY_REFUNDED, order.id)

        if order.status != OrderStatus.CANCELLED:
            self.get_logger().warning(
                "Refund skipped: order is not cancelled",
                extra={"order_id": str(order.id), "status": order.status},
            )
            return RefundOutcome(RefundOutcomeStatus.WRONG_STATE, order.id)

        return None

    def _reverse_cook_earnings(
        self,
        order: Order,
        amount: int,
    ) -> tuple[WalletTransaction | None, str | None]:
        """
        Debit the cook for a refunded order, isolating any failure.

        Returns:
            (debit transaction, None) on success, or (None, error code)
            when the debit was flagged for reconciliation instead
        """
        logger = self.get_logger()

        try:
            with transaction.atomic():
                tenant, cook_id, cook = self._resolve_cook(order)
        except Exception as exc:
            logger.exception(
                "Cook debit not applied: tenant or cook lookup failed",
                extra={"order_id": str(order.id), "tenant_id": order.tenant_id},
            )
            return None, self._flag_cook_failure(
                order,
                amount,
                error_code=getattr(exc, "error_code", type(exc).__name__),
                reason="Tenant or cook lookup failed",
                details={"error": str(exc)},
            )

        if tenant is None:
            logger.error(
                "Cook debit not applied: order has no tenant",
                extra={"order_id": str(order.id), "tenant_id": order.tenant_id},
            )
            return None, self._flag_cook_failure(
                order,
                amount,
                error_code="TENANT_NOT_FOUND",
                reason="Order has no tenant to charge",
            )

        if cook is None:
            logger.error(
                "Cook debit not applied: no cook resolved for order",
                extra={"order_id": str(order.id), "cook_id": cook_id},
            )
            return None, self._flag_cook_failure(
                order,
                amount,
                error_code="COOK_NOT_FOUND",
                reason="Order has no cook to charge",
                details={"tenant_id": str(tenant.id), "cook_id": cook_id},
            )

        wallet: Wallet | None = None
        try:
            with transaction.atomic():
                wallet = CookWalletService.get_wallet(tenant, cook)
            with transaction.atomic():
                debit = CookWalletService.decrement_for_cancellation(
                    wallet, order, amount
                )
        except InsufficientBalance as exc:
            logger.warning(
                "Cook wallet cannot cover cancelled order; "
                "client refund was still processed",
                extra={"order_id": str(order.id), **exc.details},
            )
            details = dict(exc.details)
            deduction_id = self._record_pending_deduction(order, amount, wallet)
            if deduction_id is not None:
                details["pending_deduction_id"] = deduction_id
            return None, self._flag_cook_failure(
                order,
                amount,
                error_code=exc.error_code,
                reason="Cook unwithdrawable balance too low for cancellation debit",
                wallet=wallet,
                details=details,
            )
        except Exception as exc:
            logger.exception(
                "Cook wallet adjustment failed; client refund was still processed",
                extra={"order_id": str(order.id), "cook_id": cook.pk},
            )
            return None, self._flag_cook_failure(
                order,
                amount,
                error_code=getattr(exc, "error_code", type(exc).__name__),
                reason="Cook wallet adjustment failed",
                wallet=wallet,
                details={"error": str(exc)},
            )

        return debit, None

    def _record_pending_deduction(
        self,
        order: Order,
        amount: int,
        wallet: Wallet | None,
    ) -> str | None:
        """
        Charge a shortfall to the cook's future earnings.

        Only when the cook already withdrew the order earnings; otherwise
        the reconciliation item alone covers it. Returns the deduction id.
        """
        try:
            with transaction.atomic():
                deduction = self.refund_service.deduction_service.record_for_refund(
                    order,
                    amount,
                    WalletRefundService.SOURCE_CANCELLATION,
                    wallet=wallet,
                )
        except Exception:
            self.get_logger().exception(
                "Pending deduction not recorded for cancelled order",
                extra={"order_id": str(order.id)},
            )
            return None
        return str(deduction.id) if deduction is not None else None

    def _resolve_cook(self, order: Order) -> tuple[Any, Any, Any]:
        """
        Tenant, cook id and cook charged for an order.

        The order's assigned cook takes precedence over the tenant's cook.
        Missing entities come back as None.
        """
        tenant = self.lookup.get_tenant(order.tenant_id) if order.tenant_id else None
        if tenant is None:
            return None, None, None
        cook_id = order.cook_id or tenant.cook_id
        cook = self.lookup.get_user(cook_id) if cook_id else None
        return tenant, cook_id, cook

    def _flag_cook_failure(
        self,
        order: Order,
        amount: int,
        *,
        error_code: str,
        reason: str,
        wallet: Wallet | None = None,
        details: dict[str, Any] | None = None,
    ) -> str:
        ReconciliationService.flag(
            reference_type="order",
            reference_id=order.id,
            amount=amount,
            reason=reason,
            error_code=error_code,
            wallet=wallet,
            details=details,
        )
        return error_code
