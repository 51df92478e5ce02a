"""
Reconciliation of patient aggregates against their treatments.

Patient totals are maintained by increments, so any write that bypassed
BillingService (a manual SQL fix, a restored backup) can leave them out
of step with the treatment rows. This service recomputes the sums,
reports every patient that drifted and can rewrite the stored totals.

Usage:
    from billing.reconciliation import ReconciliationService

    drift = ReconciliationService.check_patient(patient_id)
    if drift:
        ReconciliationService.heal_patient(patient_id)

    result = ReconciliationService.run(heal=True)
    if result.success:
        print(result.data.to_dict())
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import DatabaseError
from django.db.models import F

from core.decorators import retry_on_conflict
from core.exceptions import BaseApplicationError
from core.locking import lock_for_update
from core.services import BaseService, ServiceResult

from .exceptions import PatientNotFound
from .models import Patient, Treatment
from .reports import sum_money
from .types import AggregateDrift, ReconciliationReport

if TYPE_CHECKING:
    import uuid


class ReconciliationService(BaseService):
    """Detect and repair drift between patient totals and treatment rows."""

    @staticmethod
    def _expected_totals(patient_id: uuid.UUID) -> dict:
        return Treatment.objects.filter(patient_id=patient_id).aggregate(
            billed=sum_money("total_amount"),
            paid=sum_money("amount_paid"),
            outstanding=sum_money("balance"),
        )

    @classmethod
    def _compare(cls, patient: Patient) -> AggregateDrift | None:
        expected = cls._expected_totals(patient.pk)
        drift = AggregateDrift(
            patient_id=patient.pk,
            stored_billed=patient.total_billed,
            expected_billed=expected["billed"],
            stored_paid=patient.total_paid,
            expected_paid=expected["paid"],
            stored_outstanding=patient.outstanding_balance,
            expected_outstanding=expected["outstanding"],
        )
        if (
            drift.stored_billed == drift.expected_billed
            and drift.stored_paid == drift.expected_paid
            and drift.stored_outstanding == drift.expected_outstanding
        ):
            return None
        return drift

    @classmethod
    def check_patient(cls, patient_id: uuid.UUID) -> AggregateDrift | None:
        """
        Compare a patient's stored totals with the sums over its treatments.

        Returns:
            AggregateDrift if any total differs, None if consistent

        Raises:
            PatientNotFound: If patient doesn't exist
        """
        patient = Patient.objects.filter(pk=patient_id).first()
        if patient is None:
            raise PatientNotFound(
                f"Patient {patient_id} not found",
                details={"patient_id": str(patient_id)},
            )
        return cls._compare(patient)

    @classmethod
    @retry_on_conflict()
    def heal_patient(cls, patient_id: uuid.UUID) -> AggregateDrift | None:
        """
        Rewrite a patient's totals from its treatments, under a row lock.

        Returns:
            The drift that was repaired, or None if nothing needed fixing

        Raises:
            PatientNotFound: If patient doesn't exist
        """
        with cls.atomic():
            patient = lock_for_update(Patient, patient_id, not_found=PatientNotFound)
            drift = cls._compare(patient)
            if drift is None:
                return None
            Patient.objects.filter(pk=patient.pk).update(
                total_billed=drift.expected_billed,
                total_paid=drift.expected_paid,
                outstanding_balance=drift.expected_outstanding,
                version=F("version") + 1,
            )

        cls.get_logger().info(
            f"Healed aggregates of patient {patient_id}",
            extra=drift.to_dict(),
        )
        return drift

    @classmethod
    def run(cls, heal: bool = False) -> ServiceResult[ReconciliationReport]:
        """
        Check every patient and optionally heal the ones that drifted.

        Each drift is logged at WARNING. Patients deleted while the scan
        is running are skipped.

        Args:
            heal: Rewrite drifted totals (default: report only)

        Returns:
            ServiceResult with a ReconciliationReport, or a failure if the
            store could not be read
        """
        report = ReconciliationReport()
        logger = cls.get_logger()

        try:
            for patient in list(Patient.objects.order_by("id")):
                report.checked += 1
                drift = cls._compare(patient)
                if drift is None:
                    continue

                report.drifted.append(drift)
                logger.warning(
                    f"Patient {patient.pk} aggregates drifted from treatments",
                    extra=drift.to_dict(),
                )
                if heal:
                    try:
                        if cls.heal_patient(patient.pk) is not None:
                            report.healed += 1
                    except PatientNotFound:
                        logger.info(f"Patient {patient.pk} deleted during reconciliation")
        except (BaseApplicationError, DatabaseError) as e:
            logger.error(f"Reconciliation failed: {e}", exc_info=True)
            return ServiceResult.from_exception(e)

        logger.info(
            "Reconciliation completed",
            extra=report.to_dict(),
        )
        return ServiceResult.ok(report)
