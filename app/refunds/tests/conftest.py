"""
Pytest fixtures for refund tests.

The default scenario: a client cancelled a 12,500 XAF order at a tenant
whose cook holds 40,000 XAF of unwithdrawable earnings.

Usage:
    def test_refund(cancelled_order, cook_wallet):
        outcome = OrderRefundWorkflow().process_refund(
            cancelled_order.id, cancelled_order.client_id
        )
"""

from unittest.mock import MagicMock

import pytest

from core.tests.factories import UserFactory
from orders.tests.factories import CancelledOrderFactory
from tenants.tests.factories import TenantFactory
from wallets.models import BalanceType, TransactionType
from wallets.services import LedgerService


# =============================================================================
# Party Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    """The client who placed and cancelled the order."""
    return UserFactory()


@pytest.fixture
def tenant(db):
    """The tenant the order was placed with."""
    return TenantFactory()


@pytest.fixture
def cook(tenant):
    """The tenant's cook."""
    return tenant.cook


# =============================================================================
# Wallet Fixtures
# =============================================================================


@pytest.fixture
def fund_cook_wallet(db):
    """Factory fixture giving a cook unwithdrawable earnings at a tenant."""

    def _fund(owner, tenant, amount):
        wallet = LedgerService.get_or_create_wallet(owner, tenant=tenant)
        if amount:
            LedgerService.credit(
                wallet,
                amount,
                TransactionType.PAYMENT_CREDIT,
                balance_type=BalanceType.UNWITHDRAWABLE,
                description="Test earnings",
            )
        return wallet

    return _fund


@pytest.fixture
def cook_wallet(fund_cook_wallet, cook, tenant):
    """The tenant cook's wallet holding 40,000 unwithdrawable."""
    return fund_cook_wallet(cook, tenant, 40000)


# =============================================================================
# Order Fixtures
# =============================================================================


@pytest.fixture
def cancelled_order(client_user, tenant):
    """A cancelled 12,500 order (11,500 items + 1,000 delivery)."""
    return CancelledOrderFactory(
        client=client_user,
        tenant=tenant,
        subtotal=11500,
        delivery_fee=1000,
    )


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def notifier():
    """A RefundNotifier that records calls."""
    return MagicMock()
