"""
Activity log service.

ActivityLogService is the database-backed AuditSink. Records are written
in the caller's transaction: if the surrounding unit of work rolls back,
so does its audit trail.

Usage:
    from activity.services import ActivityLogService

    ActivityLogService().record(
        "orders",
        order,
        client,
        "order_cancelled_by_client",
        {"old": {"status": "paid"}, "attributes": {"status": "cancelled"}},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService

from activity.models import ActivityLog

if TYPE_CHECKING:
    from typing import Any

    from django.db import models


class ActivityLogService(BaseService):
    """Writes and reads the activity log."""

    def record(
        self,
        log_name: str,
        subject: models.Model,
        causer: Any | None,
        event: str,
        properties: dict[str, Any],
    ) -> ActivityLog:
        entry = ActivityLog.objects.create(
            log_name=log_name,
            subject_type=subject._meta.label_lower,
            subject_id=str(subject.pk),
            causer=causer,
            event=event,
            properties=properties,
        )
        self.get_logger().debug(
            "Activity recorded",
            extra={
                "log_name": log_name,
                "event": event,
                "subject_type": entry.subject_type,
                "subject_id": entry.subject_id,
            },
        )
        return entry

    @staticmethod
    def get_for_subject(
        subject: models.Model,
        log_name: str | None = None,
    ) -> list[ActivityLog]:
        """Records about a subject, oldest first."""
        qs = ActivityLog.objects.filter(
            subject_type=subject._meta.label_lower,
            subject_id=str(subject.pk),
        )
        if log_name:
            qs = qs.filter(log_name=log_name)
        return list(qs.order_by("created_at", "id"))
