"""
Abstract timestamped base for the domain models.

Usage:
    from core.model_mixins import UUIDPrimaryKeyMixin
    from core.models import BaseModel

    class Tenant(UUIDPrimaryKeyMixin, BaseModel):
        name = models.CharField(max_length=255)

Mixins go before BaseModel in the bases list.
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Adds created_at and updated_at.

    created_at is indexed: the cancellation window, wallet histories and
    reconciliation queues all filter or sort on it.
    """

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.pk})"
