"""
Wallets app configuration.

This app provides the marketplace wallet ledger:
- Client and cook wallets with withdrawable/unwithdrawable balances
- Append-only wallet transactions (the audit trail of every balance change)
- Reconciliation items for cook-side divergences
"""

from django.apps import AppConfig


class WalletsConfig(AppConfig):
    """Configuration for the wallets application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "wallets"
    verbose_name = "Wallets"
