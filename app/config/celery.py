"""
Celery configuration for the clinic billing application.

Celery runs the ledger's background work:
- Scheduled aggregate reconciliation (billing.tasks.reconcile_patient_aggregates)

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    # Trigger a reconciliation pass from a shell:
    from billing.tasks import reconcile_patient_aggregates
    reconcile_patient_aggregates.delay(heal=True)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("clinic_billing")

# Load configuration from Django settings
# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
