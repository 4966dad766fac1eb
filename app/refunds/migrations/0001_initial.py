import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="FailedRefundTask",
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
                ("task_id", models.CharField(db_index=True, max_length=255)),
                ("order_id", models.CharField(db_index=True, max_length=64)),
                ("client_id", models.CharField(max_length=64)),
                ("attempts", models.PositiveIntegerField(default=1)),
                ("exception_type", models.CharField(max_length=255)),
                ("error", models.TextField(blank=True, default="")),
                ("traceback", models.TextField(blank=True, default="")),
                ("resolved", models.BooleanField(db_index=True, default=False)),
            ],
            options={
                "verbose_name": "Failed Refund Task",
                "verbose_name_plural": "Failed Refund Tasks",
                "ordering": ["-created_at"],
            },
        ),
    ]
