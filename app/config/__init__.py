"""Project configuration: settings and the Celery app."""

# Loaded with Django so @shared_task binds to this app
from config.celery import app as celery_app

__all__ = ("celery_app",)
