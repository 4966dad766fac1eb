"""
Celery application.

Workers consume two queues (see CELERY_TASK_ROUTES):

    refunds         refunds.tasks.process_order_refund
    notifications   notifications.tasks.send_email_notification

    celery -A config worker -Q refunds,notifications
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("wallets")

# CELERY_* names in config.settings
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
