"""
Notification models.

Notification:
    An in-app notification for one user, optionally mirrored by email.
    Title and body are fully rendered when the row is created.

Usage:
    from notifications.models import Notification, NotificationType

    unread = Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class NotificationType(models.TextChoices):
    """Kinds of notification this service sends."""

    REFUND_CREDITED = "refund_credited", "Refund Credited"
    ORDER_CANCELLED = "order_cancelled", "Order Cancelled"


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    Individual notification record for a user.

    Fields:
        recipient: User receiving the notification
        notification_type: Kind of notification
        title: Fully rendered title
        body: Fully rendered body
        data: JSON context (order id, amounts, deep links)
        is_read: Whether the recipient has read it
        email_sent_at: When the email copy went out, null if none
        idempotency_key: Optional key preventing duplicates

    Inherits from BaseModel:
        created_at: Timestamp (auto, indexed)
        updated_at: Timestamp (auto)
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )

    notification_type = models.CharField(
        max_length=50,
        choices=NotificationType.choices,
        db_index=True,
    )

    title = models.CharField(
        max_length=500,
        help_text="Fully rendered notification title",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Arbitrary context data (deep links, metadata)",
    )

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    email_sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the email copy was sent",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    class Meta:
        ordering = ["-created_at"]  # Newest first
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.notification_type}) -> "
            f"User {self.recipient_id} [{read_status}]"
        )
