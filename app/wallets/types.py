"""
Data types for wallet operations.

Types:
    WalletBalance: Snapshot of a wallet's two balances
    RefundCredit: Result of crediting a refund to a client wallet
    DeductionSettlement: Result of applying earnings to pending deductions

Usage:
    from wallets.types import WalletBalance

    balance = LedgerService.get_balance(wallet)
    print(balance)  # "12,500 XAF"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wallets.models import PendingDeduction, Wallet, WalletTransaction


def format_amount(amount: int, currency: str) -> str:
    """Format a minor-unit amount for display, e.g. 12500 -> '12,500 XAF'."""
    return f"{amount:,} {currency.upper()}"


@dataclass(frozen=True)
class WalletBalance:
    """
    Snapshot of a wallet's balances.

    XAF has no subunit, so the minor unit is the franc itself.

    Attributes:
        withdrawable: Funds the owner may withdraw
        unwithdrawable: Funds held back (cook earnings in their hold period)
        currency: ISO 4217 currency code (lowercase)
    """

    withdrawable: int
    unwithdrawable: int = 0
    currency: str = "xaf"

    @property
    def total(self) -> int:
        """Sum of both balances."""
        return self.withdrawable + self.unwithdrawable

    def __str__(self) -> str:
        return format_amount(self.total, self.currency)


@dataclass(frozen=True)
class RefundCredit:
    """
    Result of crediting a refund to a client.

    Attributes:
        wallet: The client's wallet, with balances as of the credit
        transaction: The refund transaction (an existing one when the
            credit had already been applied)
    """

    wallet: Wallet
    transaction: WalletTransaction


@dataclass
class DeductionSettlement:
    """
    Result of applying new earnings to a cook's pending deductions.

    Attributes:
        deducted: Total recovered from the earnings
        remaining_payment: Earnings left to the cook after deductions
        applied: (deduction, transaction) pairs, oldest deduction first
    """

    deducted: int = 0
    remaining_payment: int = 0
    applied: list[tuple[PendingDeduction, WalletTransaction]] = field(
        default_factory=list
    )
