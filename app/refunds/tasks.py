"""
Celery tasks for order refunds.

Tasks:
    process_order_refund: Refund a cancelled order (retried on database
        errors, recorded as a FailedRefundTask when it gives up)

Helpers:
    enqueue_order_refund: Schedule the task once the caller's transaction
        commits

Retry contract:
    REFUND_TASK_MAX_ATTEMPTS attempts in total (default 3). The delay
    before a retry is REFUND_TASK_BACKOFF[retries already made]
    (default 10s, 30s, 60s). Only django.db.DatabaseError is retried;
    domain errors fail the task immediately.

Usage:
    from refunds.tasks import enqueue_order_refund

    with transaction.atomic():
        ...  # cancel the order
        enqueue_order_refund(order.id, client.pk)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from celery import Task, shared_task
from django.conf import settings
from django.db import DatabaseError, transaction

from refunds.models import FailedRefundTask
from refunds.services import OrderRefundWorkflow

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def backoff_for(retries: int) -> int:
    """Seconds to wait before the next attempt, given retries so far."""
    delays = settings.REFUND_TASK_BACKOFF
    return delays[min(retries, len(delays) - 1)]


class RefundTask(Task):
    """Task base that records terminal refund failures."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        order_id = kwargs.get("order_id", args[0] if len(args) > 0 else None)
        client_id = kwargs.get("client_id", args[1] if len(args) > 1 else None)
        attempts = self.request.retries + 1

        logger.error(
            "Order refund failed permanently",
            extra={
                "task_id": task_id,
                "order_id": str(order_id),
                "client_id": client_id,
                "attempts": attempts,
                "exception_type": type(exc).__name__,
            },
        )

        try:
            FailedRefundTask.objects.create(
                task_id=task_id or "",
                order_id=str(order_id),
                client_id=str(client_id),
                attempts=attempts,
                exception_type=type(exc).__name__,
                error=str(exc),
                traceback=str(einfo) if einfo else "",
            )
        except DatabaseError:
            # The error log above is the only record left
            logger.exception(
                "Could not record failed order refund",
                extra={"task_id": task_id, "order_id": str(order_id)},
            )


@shared_task(bind=True, base=RefundTask, acks_late=True)
def process_order_refund(self, order_id: str, client_id: Any) -> dict:
    """
    Refund a cancelled order.

    This task:
    1. Runs OrderRefundWorkflow.process_refund
    2. Retries on database errors with the configured backoff
    3. Lets domain errors fail the task (see RefundTask.on_failure)

    Args:
        order_id: UUID string of the Order
        client_id: Primary key of the client to credit

    Returns:
        Dict with the refund outcome ("status", "order_id", "amount", ...)
    """
    logger.info(
        "Processing order refund",
        extra={
            "order_id": str(order_id),
            "client_id": client_id,
            "attempt": self.request.retries + 1,
        },
    )

    try:
        outcome = OrderRefundWorkflow().process_refund(order_id, client_id)
    except DatabaseError as exc:
        countdown = backoff_for(self.request.retries)
        logger.warning(
            f"Order refund hit a database error, retrying in {countdown}s",
            extra={
                "order_id": str(order_id),
                "attempt": self.request.retries + 1,
                "error": str(exc),
            },
        )
        raise self.retry(
            exc=exc,
            countdown=countdown,
            max_retries=settings.REFUND_TASK_MAX_ATTEMPTS - 1,
        )

    return outcome.to_dict()


def enqueue_order_refund(order_id: Any, client_id: Any) -> None:
    """
    Schedule process_order_refund after the current transaction commits.

    Outside a transaction the task is scheduled immediately.
    """
    order_id = str(order_id)

    def _enqueue() -> None:
        process_order_refund.delay(order_id, client_id)
        logger.info(
            "Order refund enqueued",
            extra={"order_id": order_id, "client_id": client_id},
        )

    transaction.on_commit(_enqueue)
