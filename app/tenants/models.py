"""
Tenant model.

Only the fields the wallet and refund code reads are modelled here; tenant
onboarding, branding and settings live outside this service.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class Tenant(UUIDPrimaryKeyMixin, BaseModel):
    """
    A storefront operated by a cook.

    Fields:
        name: Display name of the storefront
        cook: User who runs the storefront and owns its cook wallet.
            Orders may name a different cook; when they do not, this
            cook receives (and gives back) the order's earnings.
        cancellation_window_minutes: Per-tenant override of the client
            cancellation window
    """

    name = models.CharField(
        max_length=255,
        help_text="Display name of the storefront",
    )

    cook = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tenants",
        help_text="Cook operating this tenant",
    )

    cancellation_window_minutes = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=(
            "Minutes after ordering during which clients may cancel; "
            "null uses ORDER_CANCELLATION_WINDOW_MINUTES"
        ),
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Tenant"
        verbose_name_plural = "Tenants"

    def __str__(self) -> str:
        return self.name
