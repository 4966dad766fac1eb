"""
Activity log model.

Append-only audit trail of business events, grouped into named logs
("orders", "client_wallets", ...). Each record names the subject it is
about and, when a user caused it, the causer.
"""

from __future__ import annotations

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from core.model_mixins import AppendOnlyMixin


class ActivityLog(AppendOnlyMixin, models.Model):
    """
    One audit record.

    Fields:
        log_name: Log channel, e.g. "orders"
        subject_type: Model label of the subject, e.g. "orders.order"
        subject_id: Primary key of the subject, as text
        causer: User who caused the event; null for system actions
        event: Event name, e.g. "refund_processed"
        properties: JSON details (old/new values, amounts)
        created_at: When the event was recorded
    """

    log_name = models.CharField(max_length=64, db_index=True)

    subject_type = models.CharField(max_length=100)
    subject_id = models.CharField(max_length=64)

    causer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    event = models.CharField(max_length=100, db_index=True)

    properties = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name = "Activity Log Entry"
        verbose_name_plural = "Activity Log"
        indexes = [
            models.Index(
                fields=["subject_type", "subject_id"],
                name="activity_subject_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.log_name}:{self.event} on {self.subject_type}:{self.subject_id}"
