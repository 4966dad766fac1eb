"""
Repository-level pytest hooks.

Django is configured before collection so test modules can import models
at module level. Fixtures live next to the tests in <app>/tests/conftest.py.
"""

import os

import django

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    django.setup()
