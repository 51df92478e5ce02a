# =============================================================================
# Clinic Billing Project Configuration Package
# =============================================================================
# Settings, URLs, ASGI/WSGI applications and the Celery app that runs the
# ledger reconciliation schedule.
#
# Import the Celery app so it is loaded when Django starts and shared_task
# decorators in billing.tasks bind to it.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
