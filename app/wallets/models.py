"""
Wallet ledger models.

Wallet:
    One per client (tenant null) and one per (cook, tenant). Holds two
    integer balances in minor units; only LedgerService writes them.

WalletTransaction:
    Append-only record of a single balance change, carrying the balance
    before and after. Replaying a wallet's transactions reproduces its
    current balances.

ReconciliationItem:
    Operator work item for a ledger divergence that the system chose to
    leave in place (a cook debit that could not be applied after the
    client had already been refunded).

PendingDeduction:
    A refund owed back by a cook who had already withdrawn the order's
    earnings. Settled from later earnings, oldest first.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin


class WalletKind(models.TextChoices):
    """Who a wallet belongs to."""

    CLIENT = "client", "Client"
    COOK = "cook", "Cook"


class BalanceType(models.TextChoices):
    """Which of a wallet's two balances a transaction touches."""

    WITHDRAWABLE = "withdrawable", "Withdrawable"
    UNWITHDRAWABLE = "unwithdrawable", "Unwithdrawable"


class Direction(models.TextChoices):
    """Whether a transaction adds to or takes from a balance."""

    CREDIT = "credit", "Credit"
    DEBIT = "debit", "Debit"


class TransactionType(models.TextChoices):
    """
    Business reason for a wallet transaction.

    REFUND: Client credited for a cancelled order or a complaint
    ORDER_CANCELLED: Cook earnings reversed for a cancelled order
    PAYMENT_CREDIT: Cook earnings from a paid order
    WITHDRAWAL: Funds paid out to the owner
    COMMISSION: Platform commission taken from cook earnings
    REFUND_DEDUCTION: Refund recovered from a cook after withdrawal
    ADJUSTMENT: Manual correction by an operator
    """

    REFUND = "refund", "Refund"
    ORDER_CANCELLED = "order_cancelled", "Order Cancelled"
    PAYMENT_CREDIT = "payment_credit", "Payment Credit"
    WITHDRAWAL = "withdrawal", "Withdrawal"
    COMMISSION = "commission", "Commission"
    REFUND_DEDUCTION = "refund_deduction", "Refund Deduction"
    ADJUSTMENT = "adjustment", "Adjustment"


def default_currency() -> str:
    return settings.WALLET_CURRENCY


class Wallet(UUIDPrimaryKeyMixin, BaseModel):
    """
    A balance holder for a client, or for a cook within one tenant.

    Balances are never written directly; use wallets.services.LedgerService,
    which locks the row and records a WalletTransaction for every change.

    Fields:
        owner: User the funds belong to
        tenant: Tenant for cook wallets, null for client wallets
        kind: CLIENT or COOK (derived from tenant on creation)
        withdrawable_balance: Funds the owner may withdraw
        unwithdrawable_balance: Funds not yet withdrawable (cook wallets only)
        currency: ISO 4217 currency code (lowercase)
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallets",
        help_text="User the funds belong to",
    )

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="wallets",
        help_text="Tenant for cook wallets; null for client wallets",
    )

    kind = models.CharField(
        max_length=16,
        choices=WalletKind.choices,
        help_text="Client or cook wallet",
    )

    withdrawable_balance = models.PositiveBigIntegerField(
        default=0,
        help_text="Withdrawable funds in minor units",
    )

    unwithdrawable_balance = models.PositiveBigIntegerField(
        default=0,
        help_text="Funds not yet withdrawable, in minor units",
    )

    currency = models.CharField(
        max_length=3,
        default=default_currency,
        help_text="ISO 4217 currency code (lowercase)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Wallet"
        verbose_name_plural = "Wallets"
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "tenant"],
                name="wallet_unique_owner_tenant",
            ),
            models.UniqueConstraint(
                fields=["owner"],
                condition=models.Q(tenant__isnull=True),
                name="wallet_unique_client_owner",
            ),
            models.CheckConstraint(
                condition=models.Q(tenant__isnull=False)
                | models.Q(unwithdrawable_balance=0),
                name="wallet_client_withdrawable_only",
            ),
        ]

    def __str__(self) -> str:
        return f"Wallet({self.id}, {self.kind}, {self.total_balance} {self.currency.upper()})"

    @property
    def total_balance(self) -> int:
        """Withdrawable plus unwithdrawable balance."""
        return self.withdrawable_balance + self.unwithdrawable_balance

    @property
    def is_client_wallet(self) -> bool:
        return self.kind == WalletKind.CLIENT


class WalletTransaction(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
    """
    One balance change on one wallet.

    Written once by LedgerService inside the same database transaction as
    the balance update; never updated or deleted.

    Fields:
        wallet: Wallet whose balance changed
        transaction_type: Business reason (refund, order_cancelled, ...)
        direction: CREDIT or DEBIT
        balance_type: Which balance changed
        amount: Positive amount in minor units
        balance_before: Selected balance before the change
        balance_after: Selected balance after the change
        currency: ISO 4217 currency code (lowercase)
        reference_type: Kind of source entity, e.g. "order"
        reference_id: Identifier of the source entity
        description: Human-readable description shown in statements
        metadata: Arbitrary JSON context (source, order number, ...)
        idempotency_key: Optional unique key; repeating a call with the
            same key returns this row instead of moving money again
        created_at: When the change was recorded
    """

    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name="transactions",
    )

    transaction_type = models.CharField(
        max_length=32,
        choices=TransactionType.choices,
        db_index=True,
    )

    direction = models.CharField(max_length=8, choices=Direction.choices)

    balance_type = models.CharField(
        max_length=16,
        choices=BalanceType.choices,
        default=BalanceType.WITHDRAWABLE,
    )

    amount = models.PositiveBigIntegerField(help_text="Amount in minor units")
    balance_before = models.PositiveBigIntegerField()
    balance_after = models.PositiveBigIntegerField()

    currency = models.CharField(max_length=3)

    reference_type = models.CharField(max_length=50, null=True, blank=True)
    reference_id = models.CharField(max_length=64, null=True, blank=True)

    description = models.CharField(max_length=255, null=True, blank=True)

    metadata = models.JSONField(default=dict, blank=True)

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Unique key that makes the operation safe to repeat",
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Wallet Transaction"
        verbose_name_plural = "Wallet Transactions"
        indexes = [
            models.Index(
                fields=["wallet", "created_at"],
                name="wallet_txn_wallet_created_idx",
            ),
            models.Index(
                fields=["reference_type", "reference_id"],
                name="wallet_txn_reference_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="wallet_txn_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        sign = "+" if self.direction == Direction.CREDIT else "-"
        return f"WalletTransaction({self.transaction_type}, {sign}{self.amount} {self.currency.upper()})"


class ReconciliationItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    A ledger divergence left for an operator to resolve.

    Created when the cook side of a refund could not be applied (no
    tenant or cook to charge, insufficient unwithdrawable balance, or
    a database error inside the cook step) while the client refund
    went through.

    Fields:
        wallet: Cook wallet that should have been debited, if resolved
        reference_type: Kind of source entity, e.g. "order"
        reference_id: Identifier of the source entity
        amount: Amount that was not applied
        reason: Human-readable explanation
        error_code: Machine-readable code of the underlying error
        details: JSON error details
        resolved: Whether an operator has dealt with the item
        resolved_at: When it was resolved
    """

    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reconciliation_items",
    )

    reference_type = models.CharField(max_length=50)
    reference_id = models.CharField(max_length=64, db_index=True)

    amount = models.PositiveBigIntegerField()

    reason = models.CharField(max_length=255)
    error_code = models.CharField(max_length=64)
    details = models.JSONField(default=dict, blank=True)

    resolved = models.BooleanField(default=False, db_index=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Reconciliation Item"
        verbose_name_plural = "Reconciliation Items"

    def __str__(self) -> str:
        return f"ReconciliationItem({self.reference_type}:{self.reference_id}, {self.error_code})"


class DeductionSource(models.TextChoices):
    """Refund that gave rise to a pending deduction."""

    CANCELLATION_REFUND = "cancellation_refund", "Cancellation Refund"
    COMPLAINT_REFUND = "complaint_refund", "Complaint Refund"


class PendingDeduction(UUIDPrimaryKeyMixin, BaseModel):
    """
    An amount a cook owes back, recovered from future earnings.

    Created when a client is refunded after the cook already withdrew the
    order's earnings. remaining_amount goes down as later earnings are
    applied; each application is a refund_deduction debit on the wallet.

    Fields:
        wallet: Cook wallet the deduction is recovered from
        order: Order whose refund created the deduction
        original_amount: Amount owed when created, in minor units
        remaining_amount: Amount still owed
        reason: Human-readable explanation shown to the cook
        source: Cancellation or complaint refund
        metadata: JSON context (order number, complaint id, ...)
        idempotency_key: Optional unique key; creating twice with the same
            key returns the first deduction
        settled_at: When remaining_amount reached zero, or the deduction
            was cancelled
    """

    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name="pending_deductions",
    )

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="pending_deductions",
    )

    original_amount = models.PositiveBigIntegerField()
    remaining_amount = models.PositiveBigIntegerField()

    reason = models.CharField(max_length=255)
    source = models.CharField(max_length=32, choices=DeductionSource.choices)
    metadata = models.JSONField(default=dict, blank=True)

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    settled_at = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Pending Deduction"
        verbose_name_plural = "Pending Deductions"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(original_amount__gt=0),
                name="pending_deduction_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(remaining_amount__lte=models.F("original_amount")),
                name="pending_deduction_remaining_lte_original",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"PendingDeduction({self.remaining_amount}/{self.original_amount}, "
            f"{self.source})"
        )

    @property
    def is_settled(self) -> bool:
        return self.settled_at is not None

    @property
    def settled_amount(self) -> int:
        """Amount recovered so far."""
        return self.original_amount - self.remaining_amount
