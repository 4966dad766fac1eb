"""
Refunds app configuration.

This app reverses the money movement of a cancelled order:
- OrderRefundWorkflow (one atomic unit: client credit, cook debit,
  status change, audit record)
- process_order_refund Celery task with its retry contract
- FailedRefundTask records for refunds that exhausted their retries
"""

from django.apps import AppConfig


class RefundsConfig(AppConfig):
    """Configuration for the refunds application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "refunds"
    verbose_name = "Refunds"
