"""
Wallet-specific exceptions for ledger operations.

This module provides a hierarchy of exceptions for wallet operations,
inheriting from the core exception base class.

Exception Hierarchy:
    WalletError (base)
    ├── InvalidAmount - Amount is not a positive integer
    ├── InsufficientBalance - Debit larger than the selected balance
    └── InvalidBalanceType - Balance the wallet does not carry

Usage:
    from wallets.exceptions import InsufficientBalance

    try:
        LedgerService.debit(wallet, 12500, TransactionType.ORDER_CANCELLED,
                            balance_type=BalanceType.UNWITHDRAWABLE)
    except InsufficientBalance as e:
        logger.warning("Cook debit rejected", extra=e.details)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ValidationError

if TYPE_CHECKING:
    import uuid
    from typing import Any


class WalletError(BaseApplicationError):
    """
    Base exception for all wallet operations.

    Example:
        try:
            LedgerService.credit(wallet, amount, TransactionType.REFUND)
        except WalletError as e:
            logger.error(f"Wallet operation failed: {e}")
    """

    default_error_code: str = "WALLET_ERROR"


class InvalidAmount(WalletError, ValidationError):
    """
    Raised when an amount is not a positive integer.

    Booleans are rejected even though they are ints in Python.
    """

    default_error_code: str = "INVALID_AMOUNT"

    def __init__(
        self,
        amount: Any,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.amount = amount
        full_details = {"amount": repr(amount)}
        if details:
            full_details.update(details)
        super().__init__(
            message=f"Amount must be a positive integer, got {amount!r}",
            error_code=error_code,
            details=full_details,
        )


class InsufficientBalance(WalletError):
    """
    Raised when a wallet balance cannot cover a debit.

    Stores the wallet ID, the balance that was selected, the required
    amount and the available balance for detailed error reporting.

    Attributes:
        wallet_id: The UUID of the wallet
        required: The amount that was required
        available: The amount that was available
        balance_type: Which balance was checked

    Example:
        if current < amount:
            raise InsufficientBalance(
                wallet.id,
                required=amount,
                available=current,
                balance_type=BalanceType.UNWITHDRAWABLE,
            )
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        wallet_id: uuid.UUID,
        required: int,
        available: int,
        balance_type: str = "withdrawable",
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.wallet_id = wallet_id
        self.required = required
        self.available = available
        self.balance_type = balance_type

        message = (
            f"Wallet {wallet_id} has insufficient {balance_type} balance: "
            f"required {required}, available {available}"
        )

        full_details = {
            "wallet_id": str(wallet_id),
            "balance_type": str(balance_type),
            "required": required,
            "available": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=message,
            error_code=error_code,
            details=full_details,
        )


class InvalidBalanceType(WalletError, ValidationError):
    """
    Raised for an unknown balance type, or for unwithdrawable operations
    on a client wallet (client wallets only hold withdrawable funds).
    """

    default_error_code: str = "INVALID_BALANCE_TYPE"
