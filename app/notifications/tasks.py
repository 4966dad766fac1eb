"""
Celery tasks for notification delivery.

Tasks:
    send_email_notification: Deliver a notification's email copy

Design:
    - Tasks receive notification_id (UUID string)
    - Tasks are idempotent: a notification whose email already went out
      is not emailed again

Usage:
    from notifications.tasks import send_email_notification

    # Called automatically by NotificationService.create_notification()
    send_email_notification.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_email_notification(self, notification_id: str) -> bool:
    """
    Send a notification by email.

    Flow:
        1. Fetch notification
        2. Skip if already emailed or the recipient has no email
        3. Send via the configured Django email backend
        4. Record email_sent_at

    Args:
        notification_id: UUID string of the Notification

    Returns:
        True if sent or skipped
    """
    notification = (
        Notification.objects.select_related("recipient")
        .filter(id=notification_id)
        .first()
    )
    if notification is None:
        logger.warning(f"Notification {notification_id} not found, skipping email")
        return True

    if notification.email_sent_at is not None:
        return True

    recipient = notification.recipient
    if not recipient.email:
        logger.info(
            f"Email skipped for notification {notification_id}: "
            "recipient has no email"
        )
        return True

    send_mail(
        subject=notification.title,
        message=notification.body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient.email],
    )

    notification.email_sent_at = timezone.now()
    notification.save(update_fields=["email_sent_at", "updated_at"])

    logger.info(f"Email sent for notification {notification_id}")
    return True
