"""
Billing app configuration.

This app provides the clinic billing ledger:
- Patients with aggregate billed/paid/outstanding totals
- Treatments with per-line payment tracking
- Patient-level payments distributed across open treatments
"""

from django.apps import AppConfig


class BillingConfig(AppConfig):
    """Configuration for the billing application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"
