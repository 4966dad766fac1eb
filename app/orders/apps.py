"""
Orders app configuration.

This app owns the order status lifecycle as far as cancellation and
refund are concerned:
- Order and OrderStatusTransition models
- OrderStateTracker (validated, audited status changes)
- OrderCancellationService (client cancellation, refund dispatch)
"""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    """Configuration for the orders application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "orders"
    verbose_name = "Orders"
