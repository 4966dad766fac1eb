"""
Abstract model mixins.

    UUIDPrimaryKeyMixin: UUID primary key
    AppendOnlyMixin: reject updates and deletes of saved rows

Usage:
    from core.models import BaseModel
    from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin

    # Ledger row that can be written once and never changed
    class Entry(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
        amount = models.PositiveBigIntegerField()
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

from core.exceptions import ImmutableRecordError

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    UUID primary key.

    Ids are generated before the insert, so an order id can be handed to
    the refund task or used in an idempotency key without a round trip.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class AppendOnlyMixin(models.Model):
    """
    Make a model append-only at the ORM level.

    A row may be inserted once. Saving an already-persisted instance or
    deleting one raises ImmutableRecordError. Used for audit trails
    (wallet transactions, status transitions, activity logs) whose history
    must never be rewritten.

    Note:
        Queryset-level bulk update()/delete() bypass model methods; the
        services that own these tables never issue them.
    """

    class Meta:
        abstract = True

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Insert the row; refuse to update an existing one."""
        if not self._state.adding:
            raise ImmutableRecordError(
                f"{self.__class__.__name__} records are append-only",
                details={"id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any) -> Any:
        """Refuse to delete."""
        raise ImmutableRecordError(
            f"{self.__class__.__name__} records cannot be deleted",
            details={"id": str(self.pk)},
        )
