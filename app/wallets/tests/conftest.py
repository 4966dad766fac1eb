"""
Pytest fixtures for wallet tests.

Usage:
    def test_debit(funded_cook_wallet):
        wallet = funded_cook_wallet(40000)
        LedgerService.debit(wallet, 12500, ...)
"""

import pytest

from core.tests.factories import UserFactory
from tenants.tests.factories import TenantFactory
from wallets.models import BalanceType, TransactionType
from wallets.services import LedgerService


# =============================================================================
# User and Tenant Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    """A client who places orders."""
    return UserFactory()


@pytest.fixture
def tenant(db):
    """A tenant with its operating cook."""
    return TenantFactory()


@pytest.fixture
def cook_user(tenant):
    """The tenant's cook."""
    return tenant.cook


# =============================================================================
# Wallet Fixtures
# =============================================================================


@pytest.fixture
def client_wallet(client_user):
    """An empty client wallet."""
    return LedgerService.get_or_create_wallet(client_user)


@pytest.fixture
def cook_wallet(cook_user, tenant):
    """An empty cook wallet for the tenant."""
    return LedgerService.get_or_create_wallet(cook_user, tenant=tenant)


@pytest.fixture
def funded_cook_wallet(cook_wallet):
    """Factory fixture crediting order earnings to the cook wallet."""

    def _fund(unwithdrawable=0, withdrawable=0):
        if unwithdrawable:
            LedgerService.credit(
                cook_wallet,
                unwithdrawable,
                TransactionType.PAYMENT_CREDIT,
                balance_type=BalanceType.UNWITHDRAWABLE,
                description="Test earnings",
            )
        if withdrawable:
            LedgerService.credit(
                cook_wallet,
                withdrawable,
                TransactionType.PAYMENT_CREDIT,
                balance_type=BalanceType.WITHDRAWABLE,
                description="Test cleared earnings",
            )
        return cook_wallet

    return _fund
