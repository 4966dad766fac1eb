import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        help_text="Display name of the storefront", max_length=255
                    ),
                ),
                (
                    "cook",
                    models.ForeignKey(
                        blank=True,
                        help_text="Cook operating this tenant",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="tenants",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "cancellation_window_minutes",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text=(
                            "Minutes after ordering during which clients may cancel; "
                            "null uses ORDER_CANCELLATION_WINDOW_MINUTES"
                        ),
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Tenant",
                "verbose_name_plural": "Tenants",
                "ordering": ["name"],
            },
        ),
    ]
