"""Tests for the application exception hierarchy."""

import uuid

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ImmutableRecordError,
    ValidationError,
)
from orders.exceptions import InvalidTransition
from wallets.exceptions import (
    InsufficientBalance,
    InvalidAmount,
    InvalidBalanceType,
    WalletError,
)


class TestBaseApplicationError:
    """Tests for BaseApplicationError."""

    def test_defaults(self):
        error = BaseApplicationError("Something failed")

        assert error.error_code == "APPLICATION_ERROR"
        assert error.details == {}
        assert str(error) == "[APPLICATION_ERROR] Something failed"
        assert error.to_dict() == {
            "error": "Something failed",
            "error_code": "APPLICATION_ERROR",
        }

    def test_custom_code_and_details(self):
        error = ConflictError("Busy", error_code="LOCKED", details={"id": 1})

        assert error.to_dict() == {
            "error": "Busy",
            "error_code": "LOCKED",
            "details": {"id": 1},
        }
        assert "LOCKED" in repr(error)


class TestDomainErrors:
    """Codes and hierarchy of the wallet and order errors."""

    def test_immutable_record_is_a_conflict(self):
        error = ImmutableRecordError("append-only")

        assert isinstance(error, ConflictError)
        assert error.error_code == "IMMUTABLE_RECORD"

    def test_insufficient_balance_details(self):
        wallet_id = uuid.uuid4()

        error = InsufficientBalance(
            wallet_id, required=12500, available=4000, balance_type="unwithdrawable"
        )

        assert isinstance(error, WalletError)
        assert error.error_code == "INSUFFICIENT_BALANCE"
        assert error.details == {
            "wallet_id": str(wallet_id),
            "balance_type": "unwithdrawable",
            "required": 12500,
            "available": 4000,
        }

    def test_invalid_amount_is_a_validation_error(self):
        error = InvalidAmount(-5)

        assert isinstance(error, ValidationError)
        assert isinstance(error, WalletError)
        assert error.error_code == "INVALID_AMOUNT"
        assert error.details == {"amount": "-5"}

    def test_invalid_balance_type_code(self):
        assert InvalidBalanceType("nope").error_code == "INVALID_BALANCE_TYPE"

    def test_invalid_transition_details(self):
        order_id = uuid.uuid4()

        error = InvalidTransition(order_id, "paid", "refunded")

        assert isinstance(error, ConflictError)
        assert error.error_code == "INVALID_TRANSITION"
        assert error.details == {
            "order_id": str(order_id),
            "current_status": "paid",
            "target_status": "refunded",
        }
