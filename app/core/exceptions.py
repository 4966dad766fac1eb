"""
Domain exception hierarchy.

    BaseApplicationError
    ├── ValidationError       bad input (amounts, balance kinds)
    └── ConflictError         the current state forbids the operation
        └── ImmutableRecordError

Infrastructure failures are deliberately not wrapped: a
django.db.DatabaseError reaching a Celery task is what triggers a retry,
while a BaseApplicationError is permanent.

Usage:
    from core.exceptions import ConflictError

    raise ConflictError(
        "Order cannot move from paid to refunded",
        error_code="INVALID_TRANSITION",
        details={"current_status": "paid", "target_status": "refunded"},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base for wallet, order and audit errors.

    Attributes:
        message: Human-readable description
        error_code: Stable code, also used on ReconciliationItem rows
        details: Structured context, logged as ``extra`` and stored on
            reconciliation items
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Serializable form, e.g.::

            {
                "error": "Wallet has insufficient unwithdrawable balance",
                "error_code": "INSUFFICIENT_BALANCE",
                "details": {"requested": 12500, "available": 4000},
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """Input rejected before anything was written."""

    default_error_code: str = "VALIDATION_ERROR"


class ConflictError(BaseApplicationError):
    """The operation is not allowed in the record's current state."""

    default_error_code: str = "CONFLICT"


class ImmutableRecordError(ConflictError):
    """
    Raised on update or delete of an append-only row.

    Wallet transactions, order status transitions and activity log rows
    are written once; corrections are new rows.
    """

    default_error_code: str = "IMMUTABLE_RECORD"
