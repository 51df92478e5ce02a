"""
Celery tasks for the billing ledger.

Tasks:
- reconcile_patient_aggregates: Periodic check of patient totals against
  their treatments

Usage:
    from billing.tasks import reconcile_patient_aggregates

    reconcile_patient_aggregates.delay(heal=True)

Celery Beat Schedule:
    CELERY_BEAT_SCHEDULE = {
        "billing-reconcile-nightly": {
            "task": "billing.tasks.reconcile_patient_aggregates",
            "schedule": 60 * 60 * 24,
        },
    }
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def reconcile_patient_aggregates(self, heal: bool | None = None) -> dict:
    """
    Run a reconciliation pass over every patient.

    Args:
        heal: Rewrite drifted totals. Defaults to
            settings.BILLING["RECONCILIATION_HEAL"].

    Returns:
        Dict with:
        - status: "completed" or "failed"
        - checked, drifted, healed, patients: Report counts and drifted ids
        - error, error_code: Set when failed
    """
    from billing.reconciliation import ReconciliationService

    if heal is None:
        heal = getattr(settings, "BILLING", {}).get("RECONCILIATION_HEAL", False)

    logger.info(
        "Starting billing reconciliation",
        extra={"heal": heal, "task_id": self.request.id},
    )

    result = ReconciliationService.run(heal=heal)
    if not result.success:
        logger.error(
            f"Billing reconciliation failed: {result.error}",
            extra={"error_code": result.error_code},
        )
        return {
            "status": "failed",
            "error": result.error,
            "error_code": result.error_code,
        }

    summary = result.data.to_dict()
    if summary["drifted"]:
        logger.warning(
            f"Billing reconciliation found {summary['drifted']} drifted patients",
            extra=summary,
        )
    return {"status": "completed", **summary}
