"""
Database-backed entity lookup for the refund workflow.

Implements core.protocols.EntityLookup with the Django ORM. Every method
returns None for a missing row or a malformed identifier.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError

from orders.models import Order
from tenants.models import Tenant

if TYPE_CHECKING:
    from typing import Any


class DatabaseEntityLookup:
    """Reads orders, users and tenants from the default database."""

    def get_order(self, order_id: Any) -> Order | None:
        try:
            return Order.objects.filter(pk=order_id).first()
        except (ValueError, DjangoValidationError):
            return None

    def get_order_for_update(self, order_id: Any) -> Order | None:
        try:
            return Order.objects.select_for_update().filter(pk=order_id).first()
        except (ValueError, DjangoValidationError):
            return None

    def get_user(self, user_id: Any) -> Any | None:
        try:
            return get_user_model().objects.filter(pk=user_id).first()
        except (ValueError, TypeError, DjangoValidationError):
            return None

    def get_tenant(self, tenant_id: Any) -> Tenant | None:
        try:
            return Tenant.objects.filter(pk=tenant_id).first()
        except (ValueError, DjangoValidationError):
            return None
