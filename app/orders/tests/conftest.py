"""
Pytest fixtures for order tests.
"""

from unittest.mock import MagicMock

import pytest

from orders.states import OrderStatus
from orders.tests.factories import CancelledOrderFactory, OrderFactory


@pytest.fixture
def paid_order(db):
    """A paid order, cancellable by its client."""
    return OrderFactory(status=OrderStatus.PAID)


@pytest.fixture
def confirmed_order(db):
    """A confirmed order, still cancellable by its client."""
    return OrderFactory(status=OrderStatus.CONFIRMED)


@pytest.fixture
def preparing_order(db):
    """An order the cook has started preparing."""
    return OrderFactory(status=OrderStatus.PREPARING)


@pytest.fixture
def cancelled_order(db):
    """A cancelled order awaiting refund."""
    return CancelledOrderFactory()


@pytest.fixture
def audit_sink():
    """An AuditSink that records calls instead of writing rows."""
    return MagicMock()
