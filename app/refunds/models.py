"""
Refund task failure records.

A FailedRefundTask is written when process_order_refund gives up, so an
operator can find and replay the refund.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class FailedRefundTask(UUIDPrimaryKeyMixin, BaseModel):
    """
    A refund task that failed terminally.

    Fields:
        task_id: Celery task id
        order_id: Order that was being refunded
        client_id: Client that was to be credited
        attempts: Attempts made before giving up
        exception_type: Class name of the final exception
        error: Final exception message
        traceback: Formatted traceback of the final exception
        resolved: Whether an operator has dealt with it
    """

    task_id = models.CharField(max_length=255, db_index=True)
    order_id = models.CharField(max_length=64, db_index=True)
    client_id = models.CharField(max_length=64)

    attempts = models.PositiveIntegerField(default=1)

    exception_type = models.CharField(max_length=255)
    error = models.TextField(blank=True, default="")
    traceback = models.TextField(blank=True, default="")

    resolved = models.BooleanField(default=False, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Failed Refund Task"
        verbose_name_plural = "Failed Refund Tasks"

    def __str__(self) -> str:
        return f"FailedRefundTask(order={self.order_id}, {self.exception_type})"
