"""
Wallet service layer.

All wallet balance changes go through LedgerService, which locks the wallet
row, writes the new balance and appends a WalletTransaction in one database
transaction. The other services here are thin domain-specific entry points
on top of it.

Services:
    LedgerService: Credit/debit primitives and the wallet read model
    CookWalletService: Cook-side adjustments and statement queries
    ReconciliationService: Divergences left for operators
    PendingDeductionService: Refunds recovered from future cook earnings
    WalletRefundService: Refund credits to client wallets

Usage:
    from wallets.services import LedgerService, ledger
    from wallets.models import TransactionType

    wallet = ledger.get_or_create_wallet(client)
    txn = ledger.credit(
        wallet,
        12500,
        TransactionType.REFUND,
        reference_type="order",
        reference_id=str(order.id),
        idempotency_key=f"refund:cancellation:{order.id}",
    )
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone

from core.services import BaseService

from .exceptions import InsufficientBalance, InvalidAmount, InvalidBalanceType
from .models import (
    BalanceType,
    DeductionSource,
    Direction,
    PendingDeduction,
    ReconciliationItem,
    TransactionType,
    Wallet,
    WalletKind,
    WalletTransaction,
)
from .types import DeductionSettlement, RefundCredit, WalletBalance

if TYPE_CHECKING:
    from typing import Any

    from django.core.paginator import Page

    from core.protocols import AuditSink, RefundNotifier

logger = logging.getLogger(__name__)

BALANCE_FIELDS = {
    BalanceType.WITHDRAWABLE: "withdrawable_balance",
    BalanceType.UNWITHDRAWABLE: "unwithdrawable_balance",
}


class LedgerService(BaseService):
    """
    Service class for wallet ledger operations.

    Key features:
    - Every mutation runs in transaction.atomic() with the wallet row
      locked (SELECT ... FOR UPDATE), so concurrent writers serialise
    - Each mutation appends exactly one WalletTransaction carrying the
      balance before and after
    - Idempotency via unique keys (safe to retry)
    - Balances can never go below zero

    All methods are static - no instance state is maintained.
    """

    # ==========================================================================
    # Wallets
    # ==========================================================================

    @staticmethod
    def get_or_create_wallet(owner: Any, tenant: Any | None = None) -> Wallet:
        """
        Get the owner's wallet, creating it with zero balances if missing.

        Args:
            owner: User the wallet belongs to
            tenant: Tenant for a cook wallet; None for the client wallet

        Returns:
            The existing or newly created Wallet
        """
        wallet, created = Wallet.objects.get_or_create(
            owner=owner,
            tenant=tenant,
            defaults={
                "kind": WalletKind.CLIENT if tenant is None else WalletKind.COOK,
            },
        )
        if created:
            logger.info(
                "Wallet created",
                extra={
                    "wallet_id": str(wallet.id),
                    "owner_id": owner.pk,
                    "kind": wallet.kind,
                },
            )
        return wallet

    @staticmethod
    def get_wallet_for_owner(owner: Any, tenant: Any | None = None) -> Wallet | None:
        """
        Get the owner's wallet without creating it.

        Returns:
            The Wallet if found, None otherwise
        """
        return Wallet.objects.filter(owner=owner, tenant=tenant).first()

    # ==========================================================================
    # Mutations
    # ==========================================================================

    @staticmethod
    def credit(
        wallet: Wallet,
        amount: int,
        transaction_type: TransactionType | str,
        *,
        balance_type: BalanceType | str = BalanceType.WITHDRAWABLE,
        reference_type: str | None = None,
        reference_id: Any | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> WalletTransaction:
        """
        Add funds to one of the wallet's balances.

        Args:
            wallet: Wallet to credit
            amount: Positive integer amount in minor units
            transaction_type: Business reason for the credit
            balance_type: Balance to credit (default: withdrawable)
            reference_type: Kind of source entity, e.g. "order"
            reference_id: Identifier of the source entity
            description: Statement description
            metadata: Extra JSON context
            idempotency_key: Key that makes the call safe to repeat

        Returns:
            The created WalletTransaction, or the existing one when
            idempotency_key was already used

        Raises:
            InvalidAmount: If amount is not a positive integer
            InvalidBalanceType: If the balance is unknown or not carried by
                this wallet
        """
        return LedgerService._apply(
            wallet,
            amount,
            transaction_type,
            Direction.CREDIT,
            balance_type=balance_type,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )

    @staticmethod
    def debit(
        wallet: Wallet,
        amount: int,
        transaction_type: TransactionType | str,
        *,
        balance_type: BalanceType | str = BalanceType.WITHDRAWABLE,
        reference_type: str | None = None,
        reference_id: Any | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> WalletTransaction:
        """
        Remove funds from one of the wallet's balances.

        Same arguments as credit(). Nothing is written when the debit is
        rejected.

        Raises:
            InvalidAmount: If amount is not a positive integer
            InvalidBalanceType: If the balance is unknown or not carried by
                this wallet
            InsufficientBalance: If the selected balance is below amount
        """
        return LedgerService._apply(
            wallet,
            amount,
            transaction_type,
            Direction.DEBIT,
            balance_type=balance_type,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )

    @staticmethod
    def _validate_amount(amount: Any) -> None:
        # bool is a subclass of int
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(amount)

    @staticmethod
    def _resolve_balance_type(balance_type: BalanceType | str) -> BalanceType:
        try:
            return BalanceType(balance_type)
        except ValueError:
            raise InvalidBalanceType(
                f"Unknown balance type {balance_type!r}",
                details={"balance_type": str(balance_type)},
            )

    @staticmethod
    def _apply(
        wallet: Wallet,
        amount: int,
        transaction_type: TransactionType | str,
        direction: Direction,
        *,
        balance_type: BalanceType | str,
        reference_type: str | None,
        reference_id: Any | None,
        description: str | None,
        metadata: dict[str, Any] | None,
        idempotency_key: str | None,
    ) -> WalletTransaction:
        LedgerService._validate_amount(amount)
        balance_type = LedgerService._resolve_balance_type(balance_type)
        field = BALANCE_FIELDS[balance_type]

        with transaction.atomic():
            locked = Wallet.objects.select_for_update().get(pk=wallet.pk)

            # Checked under the wallet lock so a concurrent retry with the
            # same key waits for the first writer and then sees its row
            if idempotency_key:
                existing = WalletTransaction.objects.filter(
                    idempotency_key=idempotency_key
                ).first()
                if existing is not None:
                    logger.info(
                        "Wallet transaction already recorded",
                        extra={
                            "wallet_id": str(locked.id),
                            "transaction_id": str(existing.id),
                            "idempotency_key": idempotency_key,
                        },
                    )
                    LedgerService._sync(wallet, locked)
                    return existing

            if balance_type == BalanceType.UNWITHDRAWABLE and locked.is_client_wallet:
                raise InvalidBalanceType(
                    "Client wallets only hold withdrawable funds",
                    details={"wallet_id": str(locked.id)},
                )

            before = getattr(locked, field)
            if direction == Direction.DEBIT:
                if before < amount:
                    raise InsufficientBalance(
                        locked.id,
                        required=amount,
                        available=before,
                        balance_type=balance_type,
                    )
                after = before - amount
            else:
                after = before + amount

            setattr(locked, field, after)
            locked.save(update_fields=[field, "updated_at"])

            txn = WalletTransaction.objects.create(
                wallet=locked,
                transaction_type=transaction_type,
                direction=direction,
                balance_type=balance_type,
                amount=amount,
                balance_before=before,
                balance_after=after,
                currency=locked.currency,
                reference_type=reference_type,
                reference_id=str(reference_id) if reference_id is not None else None,
                description=description,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            )

        LedgerService._sync(wallet, locked)
        logger.info(
            f"Wallet {direction.value}ed",
            extra={
                "wallet_id": str(locked.id),
                "transaction_id": str(txn.id),
                "transaction_type": str(transaction_type),
                "balance_type": str(balance_type),
                "amount": amount,
                "balance_before": before,
                "balance_after": after,
            },
        )
        return txn

    @staticmethod
    def _sync(wallet: Wallet, locked: Wallet) -> None:
        """Copy the locked row's balances onto the caller's instance."""
        wallet.withdrawable_balance = locked.withdrawable_balance
        wallet.unwithdrawable_balance = locked.unwithdrawable_balance
        wallet.updated_at = locked.updated_at

    # ==========================================================================
    # Read model
    # ==========================================================================

    @staticmethod
    def get_balance(wallet: Wallet) -> WalletBalance:
        """
        Get the wallet's stored balances, read fresh from the database.
        """
        row = Wallet.objects.values(
            "withdrawable_balance", "unwithdrawable_balance", "currency"
        ).get(pk=wallet.pk)
        return WalletBalance(
            withdrawable=row["withdrawable_balance"],
            unwithdrawable=row["unwithdrawable_balance"],
            currency=row["currency"],
        )

    @staticmethod
    def get_transactions(
        wallet: Wallet,
        limit: int = 50,
        offset: int = 0,
        transaction_type: TransactionType | str | None = None,
    ) -> list[WalletTransaction]:
        """
        Get the wallet's transactions, newest first.

        Args:
            wallet: Wallet to list
            limit: Maximum number of transactions (default: 50)
            offset: Number of transactions to skip (default: 0)
            transaction_type: Only return this type, if given

        Returns:
            List of WalletTransaction objects
        """
        qs = WalletTransaction.objects.filter(wallet=wallet)
        if transaction_type:
            qs = qs.filter(transaction_type=transaction_type)
        return list(qs.order_by("-created_at")[offset : offset + limit])

    @staticmethod
    def get_transactions_by_reference(
        reference_type: str,
        reference_id: Any,
    ) -> list[WalletTransaction]:
        """
        Get all transactions, on any wallet, for a source entity.

        Useful for auditing all money movement caused by one order.

        Returns:
            List of WalletTransaction objects ordered by created_at ascending
        """
        return list(
            WalletTransaction.objects.filter(
                reference_type=reference_type,
                reference_id=str(reference_id),
            ).order_by("created_at")
        )

    @staticmethod
    def replay_balance(wallet: Wallet) -> WalletBalance:
        """
        Recompute the wallet's balances from its transactions.

        Returns:
            WalletBalance derived purely from the ledger
        """
        totals = WalletTransaction.objects.filter(wallet=wallet).aggregate(
            **{
                f"{balance_type}_{direction}": Sum(
                    "amount",
                    filter=Q(balance_type=balance_type, direction=direction),
                    default=0,
                )
                for balance_type in BalanceType.values
                for direction in Direction.values
            }
        )
        return WalletBalance(
            withdrawable=totals["withdrawable_credit"] - totals["withdrawable_debit"],
            unwithdrawable=(
                totals["unwithdrawable_credit"] - totals["unwithdrawable_debit"]
            ),
            currency=wallet.currency,
        )

    @staticmethod
    def verify_wallet(wallet: Wallet) -> bool:
        """
        Check that the stored balances match a replay of the ledger.

        Returns:
            True when they match; a mismatch is logged at error level
        """
        stored = LedgerService.get_balance(wallet)
        replayed = LedgerService.replay_balance(wallet)
        if stored != replayed:
            logger.error(
                "Wallet balance does not match its ledger",
                extra={
                    "wallet_id": str(wallet.id),
                    "stored_withdrawable": stored.withdrawable,
                    "stored_unwithdrawable": stored.unwithdrawable,
                    "replayed_withdrawable": replayed.withdrawable,
                    "replayed_unwithdrawable": replayed.unwithdrawable,
                },
            )
            return False
        return True


class CookWalletService(BaseService):
    """
    Cook wallet adjustments and statement queries.

    A cook has one wallet per tenant they cook for. Order earnings sit in
    the unwithdrawable balance until they clear, which is where a
    cancellation takes them back from.
    """

    HISTORY_PAGE_SIZE = 20

    @staticmethod
    def get_wallet(tenant: Any, cook: Any) -> Wallet:
        """Get or create the cook's wallet for a tenant."""
        return LedgerService.get_or_create_wallet(cook, tenant=tenant)

    @classmethod
    def decrement_for_cancellation(
        cls,
        wallet: Wallet,
        order: Any,
        amount: int,
    ) -> WalletTransaction | None:
        """
        Take a cancelled order's earnings back from the cook.

        Debits the unwithdrawable balance with an order_cancelled
        transaction referencing the order. Repeating the call for the
        same order does not debit twice.

        Args:
            wallet: The cook's wallet for the order's tenant
            order: The cancelled order
            amount: Amount to take back; zero or less is a no-op

        Returns:
            The debit transaction, or None when amount <= 0

        Raises:
            InsufficientBalance: If the unwithdrawable balance is too low
        """
        if amount <= 0:
            cls.get_logger().info(
                "No cook debit needed for cancelled order",
                extra={"order_id": str(order.id), "amount": amount},
            )
            return None

        return LedgerService.debit(
            wallet,
            amount,
            TransactionType.ORDER_CANCELLED,
            balance_type=BalanceType.UNWITHDRAWABLE,
            reference_type="order",
            reference_id=order.id,
            description=f"Order {order.order_number} cancelled",
            metadata={"order_number": order.order_number},
            idempotency_key=f"order_cancelled:{order.id}",
        )

    @staticmethod
    def get_recent_transactions(wallet: Wallet, limit: int = 10) -> list[WalletTransaction]:
        """Latest transactions for the cook dashboard."""
        return LedgerService.get_transactions(wallet, limit=limit)

    @classmethod
    def get_transaction_history(
        cls,
        wallet: Wallet,
        transaction_type: str | None = None,
        direction: str = "desc",
        page: int = 1,
    ) -> Page:
        """
        Paginated statement of a cook wallet.

        Args:
            wallet: Wallet to list
            transaction_type: Filter by type; unknown types are ignored
            direction: "asc" or "desc" by creation time; anything else
                means "desc"
            page: 1-based page number; out-of-range pages are clamped

        Returns:
            A django.core.paginator.Page of WalletTransaction objects
        """
        qs = WalletTransaction.objects.filter(wallet=wallet)
        if transaction_type in TransactionType.values:
            qs = qs.filter(transaction_type=transaction_type)
        if direction not in ("asc", "desc"):
            direction = "desc"
        order_by = "created_at" if direction == "asc" else "-created_at"
        paginator = Paginator(qs.order_by(order_by, "id"), cls.HISTORY_PAGE_SIZE)
        return paginator.get_page(page)


class PendingDeductionService(BaseService):
    """
    Refunds recovered from a cook's future earnings.

    When a client is refunded after the cook already withdrew the order's
    earnings, the amount becomes a PendingDeduction instead of a debit.
    New earnings are applied to open deductions oldest first.

    Args:
        audit_sink: AuditSink for the pending_deductions log (default:
            activity.services.ActivityLogService)
    """

    LOG_NAME = "pending_deductions"

    SOURCES = {
        "cancellation": DeductionSource.CANCELLATION_REFUND,
        "complaint": DeductionSource.COMPLAINT_REFUND,
    }

    def __init__(self, audit_sink: AuditSink | None = None):
        if audit_sink is None:
            from activity.services import ActivityLogService

            audit_sink = ActivityLogService()
        self.audit_sink = audit_sink

    @staticmethod
    def get_cook_wallet(order: Any) -> Wallet | None:
        """
        Existing wallet of the cook charged for an order.

        The order's assigned cook takes precedence over the tenant's cook.
        Returns None when there is no tenant, cook or wallet.
        """
        tenant = order.tenant
        if tenant is None:
            return None
        cook = order.cook or tenant.cook
        if cook is None:
            return None
        return LedgerService.get_wallet_for_owner(cook, tenant=tenant)

    @staticmethod
    def has_cook_withdrawn_order_funds(wallet: Wallet, order: Any) -> bool:
        """Whether a withdrawal followed the order's payment credit."""
        payment_credit = (
            WalletTransaction.objects.filter(
                wallet=wallet,
                transaction_type=TransactionType.PAYMENT_CREDIT,
                reference_type="order",
                reference_id=str(order.id),
            )
            .order_by("created_at")
            .first()
        )
        if payment_credit is None:
            return False

        return WalletTransaction.objects.filter(
            wallet=wallet,
            transaction_type=TransactionType.WITHDRAWAL,
            direction=Direction.DEBIT,
            created_at__gte=payment_credit.created_at,
        ).exists()

    def create_deduction(
        self,
        wallet: Wallet,
        order: Any,
        amount: int,
        reason: str,
        source: DeductionSource | str,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> PendingDeduction | None:
        """
        Record an amount owed by a cook.

        Returns:
            The new deduction, the existing one when idempotency_key was
            already used, or None for amount <= 0
        """
        if amount <= 0:
            return None

        if idempotency_key:
            existing = PendingDeduction.objects.filter(
                idempotency_key=idempotency_key
            ).first()
            if existing is not None:
                return existing

        with transaction.atomic():
            deduction = PendingDeduction.objects.create(
                wallet=wallet,
                order=order,
                original_amount=amount,
                remaining_amount=amount,
                reason=reason,
                source=source,
                metadata={"order_number": order.order_number, **(metadata or {})},
                idempotency_key=idempotency_key,
            )
            self.audit_sink.record(
                self.LOG_NAME,
                deduction,
                None,
                "pending_deduction_created",
                {
                    "amount": amount,
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "source": str(source),
                    "reason": reason,
                },
            )

        self.get_logger().info(
            "Pending deduction created",
            extra={
                "deduction_id": str(deduction.id),
                "wallet_id": str(wallet.id),
                "order_id": str(order.id),
                "amount": amount,
            },
        )
        return deduction

    def record_for_refund(
        self,
        order: Any,
        amount: int,
        refund_source: str,
        *,
        refund_key: str | None = None,
        wallet: Wallet | None = None,
    ) -> PendingDeduction | None:
        """
        Create a deduction if the cook already withdrew the order's earnings.

        Args:
            order: Refunded order
            amount: Refunded amount
            refund_source: "cancellation" or "complaint"
            refund_key: Identifies the refund; one deduction per key
                (default: the order id)
            wallet: Cook wallet, when the caller has already resolved it

        Returns:
            The deduction, or None when none is owed
        """
        if amount <= 0 or not order.tenant_id:
            return None

        wallet = wallet or self.get_cook_wallet(order)
        if wallet is None or not self.has_cook_withdrawn_order_funds(wallet, order):
            return None

        source = self.SOURCES.get(refund_source, DeductionSource.COMPLAINT_REFUND)
        if source == DeductionSource.CANCELLATION_REFUND:
            reason = f"Cancellation refund for order {order.order_number}"
        else:
            reason = f"Complaint resolution refund for order {order.order_number}"

        return self.create_deduction(
            wallet,
            order,
            amount,
            reason,
            source,
            metadata={"refund_source": refund_source},
            idempotency_key=f"deduction:{refund_source}:{refund_key or order.id}",
        )

    def apply_deductions(
        self,
        wallet: Wallet,
        payment_amount: int,
        source_order: Any | None = None,
    ) -> DeductionSettlement:
        """
        Recover open deductions from newly credited earnings.

        Call after the earnings were credited to the unwithdrawable
        balance. Each deduction takes the lesser of what it is owed and
        what is left of the payment, as a refund_deduction debit.

        Args:
            wallet: Cook wallet the earnings were credited to
            payment_amount: Amount of the new earnings
            source_order: Order that produced the earnings, if any

        Returns:
            DeductionSettlement
        """
        settlement = DeductionSettlement(remaining_payment=max(payment_amount, 0))
        if payment_amount <= 0:
            return settlement

        with transaction.atomic():
            open_deductions = (
                PendingDeduction.objects.select_for_update()
                .select_related("order")
                .filter(wallet=wallet, settled_at__isnull=True, remaining_amount__gt=0)
                .order_by("created_at", "id")
            )
            for deduction in open_deductions:
                if settlement.remaining_payment <= 0:
                    break

                amount = min(settlement.remaining_payment, deduction.remaining_amount)
                order_number = deduction.order.order_number if deduction.order else None
                txn = LedgerService.debit(
                    wallet,
                    amount,
                    TransactionType.REFUND_DEDUCTION,
                    balance_type=BalanceType.UNWITHDRAWABLE,
                    reference_type="pending_deduction",
                    reference_id=deduction.id,
                    description=f"Refund deduction for order {order_number}",
                    metadata={
                        "deduction_id": str(deduction.id),
                        "original_order_id": str(deduction.order_id),
                        "source_order_id": (
                            str(source_order.id) if source_order is not None else None
                        ),
                        "refund_reason": deduction.reason,
                    },
                )

                deduction.remaining_amount -= amount
                if deduction.remaining_amount == 0:
                    deduction.settled_at = timezone.now()
                deduction.save(
                    update_fields=["remaining_amount", "settled_at", "updated_at"]
                )
                self.audit_sink.record(
                    self.LOG_NAME,
                    deduction,
                    None,
                    (
                        "deduction_fully_settled"
                        if deduction.is_settled
                        else "deduction_partially_settled"
                    ),
                    {
                        "amount_deducted": amount,
                        "remaining_after": deduction.remaining_amount,
                        "transaction_id": str(txn.id),
                    },
                )

                settlement.applied.append((deduction, txn))
                settlement.deducted += amount
                settlement.remaining_payment -= amount

        if settlement.applied:
            self.get_logger().info(
                "Pending deductions applied to earnings",
                extra={
                    "wallet_id": str(wallet.id),
                    "payment_amount": payment_amount,
                    "deducted": settlement.deducted,
                    "deductions_count": len(settlement.applied),
                },
            )
        return settlement

    @staticmethod
    def get_pending_deductions(wallet: Wallet) -> list[PendingDeduction]:
        """Open deductions, oldest first."""
        return list(
            PendingDeduction.objects.filter(wallet=wallet, settled_at__isnull=True)
            .select_related("order")
            .order_by("created_at", "id")
        )

    @staticmethod
    def get_total_pending_amount(wallet: Wallet) -> int:
        total = PendingDeduction.objects.filter(
            wallet=wallet, settled_at__isnull=True
        ).aggregate(total=Sum("remaining_amount"))["total"]
        return total or 0

    def cancel_deduction(
        self,
        deduction: PendingDeduction,
        admin: Any | None = None,
    ) -> bool:
        """
        Write off a deduction raised in error.

        Returns:
            False if the deduction was already settled
        """
        with transaction.atomic():
            locked = PendingDeduction.objects.select_for_update().get(pk=deduction.pk)
            if locked.is_settled:
                return False

            written_off = locked.remaining_amount
            locked.remaining_amount = 0
            locked.settled_at = timezone.now()
            locked.save(update_fields=["remaining_amount", "settled_at", "updated_at"])
            self.audit_sink.record(
                self.LOG_NAME,
                locked,
                admin,
                "deduction_cancelled",
                {
                    "original_amount": locked.original_amount,
                    "written_off": written_off,
                },
            )

        deduction.remaining_amount = locked.remaining_amount
        deduction.settled_at = locked.settled_at
        return True


class WalletRefundService(BaseService):
    """
    Credits refunds to client wallets.

    Refunds always land in the client's withdrawable balance. The client
    is notified once the surrounding transaction commits, so a refund that
    rolls back never produces a notification.

    Args:
        notifier: RefundNotifier used after commit (default:
            notifications.services.RefundNotificationService)
        audit_sink: AuditSink for refund_credited records (default:
            activity.services.ActivityLogService)
        deduction_service: PendingDeductionService charging complaint
            refunds to cooks who already withdrew the order earnings
    """

    SOURCE_CANCELLATION = "cancellation"
    SOURCE_COMPLAINT = "complaint"

    def __init__(
        self,
        notifier: RefundNotifier | None = None,
        audit_sink: AuditSink | None = None,
        deduction_service: PendingDeductionService | None = None,
    ):
        if notifier is None:
            from notifications.services import RefundNotificationService

            notifier = RefundNotificationService()
        if audit_sink is None:
            from activity.services import ActivityLogService

            audit_sink = ActivityLogService()
        self.notifier = notifier
        self.audit_sink = audit_sink
        self.deduction_service = deduction_service or PendingDeductionService(
            audit_sink=audit_sink
        )

    def credit_refund(
        self,
        client: Any,
        amount: int,
        order: Any,
        source: str,
        description: str,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> RefundCredit:
        """
        Credit a refund to the client's wallet.

        The wallet is created on first use. When idempotency_key was
        already used, the earlier transaction is returned and no second
        notification is scheduled.

        Args:
            client: User receiving the refund
            amount: Positive amount in minor units
            order: Order the refund relates to
            source: Why the refund happened ("cancellation", "complaint")
            description: Statement description
            metadata: Extra JSON context merged into the transaction metadata
            idempotency_key: Key that makes the credit safe to repeat

        Returns:
            RefundCredit with the wallet and transaction
        """
        with transaction.atomic():
            wallet = LedgerService.get_or_create_wallet(client)

            if idempotency_key:
                existing = WalletTransaction.objects.filter(
                    idempotency_key=idempotency_key
                ).first()
                if existing is not None:
                    return RefundCredit(wallet=wallet, transaction=existing)

            txn = LedgerService.credit(
                wallet,
                amount,
                TransactionType.REFUND,
                reference_type="order",
                reference_id=order.id,
                description=description,
                metadata={
                    "source": source,
                    "order_number": order.order_number,
                    **(metadata or {}),
                },
                idempotency_key=idempotency_key,
            )

            transaction.on_commit(
                partial(self._notify, client, amount, order, str(txn.id))
            )

        return RefundCredit(wallet=wallet, transaction=txn)

    def credit_cancellation_refund(
        self,
        client: Any,
        amount: int,
        order: Any,
    ) -> RefundCredit:
        """Credit the full refund for a cancelled order."""
        return self.credit_refund(
            client,
            amount,
            order,
            source=self.SOURCE_CANCELLATION,
            description=f"Refund for cancelled order {order.order_number}",
            idempotency_key=f"refund:cancellation:{order.id}",
        )

    def credit_complaint_refund(
        self,
        client: Any,
        amount: int,
        order: Any,
        complaint_id: Any,
    ) -> RefundCredit:
        """
        Credit a refund awarded by a complaint resolution.

        Writes a refund_credited audit record on the client_wallets log
        the first time the complaint is refunded. If the cook already
        withdrew the order earnings, the amount is also recorded as a
        PendingDeduction against the cook wallet.
        """
        idempotency_key = f"refund:complaint:{complaint_id}"
        with transaction.atomic():
            already_credited = WalletTransaction.objects.filter(
                idempotency_key=idempotency_key
            ).exists()
            result = self.credit_refund(
                client,
                amount,
                order,
                source=self.SOURCE_COMPLAINT,
                description=f"Complaint resolution refund for order {order.order_number}",
                metadata={"complaint_id": complaint_id},
                idempotency_key=idempotency_key,
            )
            if already_credited:
                return result

            txn = result.transaction
            self.audit_sink.record(
                "client_wallets",
                result.wallet,
                client,
                "refund_credited",
                {
                    "refund_amount": txn.amount,
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "source": self.SOURCE_COMPLAINT,
                    "complaint_id": complaint_id,
                    "balance_before": txn.balance_before,
                    "balance_after": txn.balance_after,
                    "transaction_id": str(txn.id),
                },
            )
            self.deduction_service.record_for_refund(
                order,
                amount,
                self.SOURCE_COMPLAINT,
                refund_key=str(complaint_id),
            )
        return result

    def _notify(self, client: Any, amount: int, order: Any, refund_key: str) -> None:
        try:
            self.notifier.notify_refund(client, amount, order, refund_key=refund_key)
        except Exception:
            self.get_logger().exception(
                "Refund notification failed",
                extra={
                    "order_id": str(order.id),
                    "client_id": client.pk,
                    "transaction_id": refund_key,
                },
            )


class ReconciliationService(BaseService):
    """Records and lists ledger divergences awaiting an operator."""

    @classmethod
    def flag(
        cls,
        *,
        reference_type: str,
        reference_id: Any,
        amount: int,
        reason: str,
        error_code: str,
        wallet: Wallet | None = None,
        details: dict[str, Any] | None = None,
    ) -> ReconciliationItem:
        item = ReconciliationItem.objects.create(
            wallet=wallet,
            reference_type=reference_type,
            reference_id=str(reference_id),
            amount=amount,
            reason=reason,
            error_code=error_code,
            details=details or {},
        )
        cls.get_logger().warning(
            "Reconciliation item recorded",
            extra={
                "reconciliation_item_id": str(item.id),
                "reference_type": reference_type,
                "reference_id": str(reference_id),
                "error_code": error_code,
                "amount": amount,
            },
        )
        return item

    @staticmethod
    def get_open_items() -> list[ReconciliationItem]:
        """Unresolved items, oldest first."""
        return list(
            ReconciliationItem.objects.filter(resolved=False).order_by("created_at")
        )

    @classmethod
    def resolve(cls, item: ReconciliationItem) -> ReconciliationItem:
        """Mark an item as dealt with."""
        if not item.resolved:
            item.resolved = True
            item.resolved_at = timezone.now()
            item.save(update_fields=["resolved", "resolved_at", "updated_at"])
        return item


# Singleton instance for convenience
# Usage: from wallets.services import ledger
ledger = LedgerService()
