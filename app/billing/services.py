"""
Billing service layer.

This module provides the BillingService class which encapsulates all
writes to the billing ledger. Every operation that changes money runs in
one transaction that updates the treatment rows and the patient
aggregates together, so the totals never disagree with the line items.

Locking:
    Rows are locked with SELECT ... FOR UPDATE, always the patient first
    and then its treatments ordered by id. Aggregates move by F()
    increments. A transaction that loses a race is retried by
    retry_on_conflict.

Usage:
    from billing.services import BillingService
    from billing.types import PatientParams, TreatmentParams

    patient_id = BillingService.create_patient_with_treatment(
        PatientParams(name="John Doe", phone="555-0101"),
        TreatmentParams(diagnosis="Routine cleaning", total_amount="150", amount_paid="150"),
    )
    BillingService.apply_patient_payment(patient_id, "50", note="Cash")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db.models import F, Q
from django.utils import timezone

from core.decorators import retry_on_conflict
from core.exceptions import ValidationError
from core.locking import lock_for_update
from core.services import BaseService

from .derivation import PaymentStatus, plan_distribution, to_money, validate_treatment_amounts
from .exceptions import InvalidAmountError, OverpaymentError, PatientNotFound, TreatmentNotFound
from .models import OPEN_STATUSES, Patient, Treatment
from .types import PatientLedger, TreatmentReceipt

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal
    from typing import Any

    from .types import PatientParams, TreatmentParams

# Patient columns that may change outside a ledger operation
CONTACT_FIELDS = ("name", "phone", "age", "gender", "date_of_birth")

DEFAULT_NOTES = {
    "INITIAL_PAYMENT_NOTE": "Initial payment",
    "DEFAULT_TREATMENT_PAYMENT_NOTE": "Direct patient payment",
    "DEFAULT_PATIENT_PAYMENT_NOTE": "Direct payment",
}


def _note_setting(name: str) -> str:
    return getattr(settings, "BILLING", {}).get(name, DEFAULT_NOTES[name])


class BillingService(BaseService):
    """
    Service class for ledger operations.

    All ledger writes should go through this service to ensure proper
    validation, transaction handling, and aggregate bookkeeping.

    Key features:
    - One transaction per operation, rolled back on any error
    - Patient-then-treatment lock order to prevent deadlocks
    - Bounded retry on transaction conflicts
    - Validation before any write

    All methods are classmethods - no instance state is maintained.
    """

    # =========================================================================
    # Locking helpers
    # =========================================================================

    @staticmethod
    def _lock_patient(patient_id: uuid.UUID, expected_version: int | None = None) -> Patient:
        return lock_for_update(
            Patient,
            patient_id,
            expected_version=expected_version,
            not_found=PatientNotFound,
        )

    @classmethod
    def _lock_treatment(
        cls,
        treatment_id: uuid.UUID,
        expected_version: int | None = None,
    ) -> tuple[Patient, Treatment]:
        """
        Lock a treatment and its patient, patient first.

        The owner is looked up without a lock to learn which patient row
        to take first. patient_id never changes, so the lookup cannot go
        stale.
        """
        patient_id = (
            Treatment.objects.filter(pk=treatment_id)
            .values_list("patient_id", flat=True)
            .first()
        )
        if patient_id is None:
            raise TreatmentNotFound(
                f"Treatment {treatment_id} not found",
                details={"treatment_id": str(treatment_id)},
            )

        patient = cls._lock_patient(patient_id)
        treatment = lock_for_update(
            Treatment,
            treatment_id,
            expected_version=expected_version,
            not_found=TreatmentNotFound,
        )
        return patient, treatment

    @staticmethod
    def _build_treatment(patient: Patient, params: TreatmentParams) -> Treatment:
        """Create a treatment row with derived balance/status and initial history."""
        validate_treatment_amounts(params.total_amount, params.amount_paid)

        treatment = Treatment(
            patient=patient,
            patient_name=patient.name,
            entry_date=params.entry_date or timezone.now(),
            diagnosis=params.diagnosis,
            treatment_plan=params.treatment_plan,
            tooth_number=params.tooth_number,
            total_amount=params.total_amount,
            amount_paid=params.amount_paid,
            follow_up_date=params.follow_up_date,
        )
        treatment.derive_state()
        if params.amount_paid > 0:
            treatment.append_payment(
                params.amount_paid,
                note=_note_setting("INITIAL_PAYMENT_NOTE"),
                date=treatment.entry_date,
            )
        treatment.save(force_insert=True)
        return treatment

    # =========================================================================
    # Treatment lifecycle
    # =========================================================================

    @classmethod
    @retry_on_conflict()
    def create_patient_with_treatment(
        cls,
        patient: PatientParams,
        treatment: TreatmentParams,
    ) -> uuid.UUID:
        """
        Create a patient together with its first treatment.

        The patient's aggregates are initialized from the treatment
        directly, and first_visit_date is the treatment's entry date.

        Args:
            patient: Validated patient details
            treatment: Validated treatment details

        Returns:
            The new patient's id

        Raises:
            ValidationError: If amounts or required fields are invalid
        """
        validate_treatment_amounts(treatment.total_amount, treatment.amount_paid)
        entry_date = treatment.entry_date or timezone.now()

        with cls.atomic():
            record = Patient.objects.create(
                name=patient.name,
                phone=patient.phone,
                age=patient.age,
                gender=patient.gender,
                date_of_birth=patient.date_of_birth,
                first_visit_date=entry_date,
                total_billed=treatment.total_amount,
                total_paid=treatment.amount_paid,
                outstanding_balance=treatment.total_amount - treatment.amount_paid,
            )
            item = cls._build_treatment(record, treatment)

        cls.get_logger().info(
            f"Created patient {record.pk} with treatment {item.pk}",
            extra={
                "patient_id": str(record.pk),
                "treatment_id": str(item.pk),
                "total_amount": str(item.total_amount),
            },
        )
        return record.pk

    @classmethod
    @retry_on_conflict()
    def add_treatment(cls, patient_id: uuid.UUID, treatment: TreatmentParams) -> uuid.UUID:
        """
        Add a treatment to an existing patient.

        Args:
            patient_id: Owning patient
            treatment: Validated treatment details

        Returns:
            The new treatment's id

        Raises:
            PatientNotFound: If the patient doesn't exist
            ValidationError: If the amounts are invalid
        """
        with cls.atomic():
            patient = cls._lock_patient(patient_id)
            item = cls._build_treatment(patient, treatment)
            Patient.shift_totals(
                patient.pk,
                billed=item.total_amount,
                paid=item.amount_paid,
                outstanding=item.balance,
            )

        cls.get_logger().info(
            f"Added treatment {item.pk} to patient {patient_id}",
            extra={
                "patient_id": str(patient_id),
                "treatment_id": str(item.pk),
                "total_amount": str(item.total_amount),
                "amount_paid": str(item.amount_paid),
            },
        )
        return item.pk

    @classmethod
    @retry_on_conflict()
    def record_treatment_payment(
        cls,
        treatment_id: uuid.UUID,
        amount: Decimal | int | str,
        note: str | None = None,
        expected_version: int | None = None,
    ) -> Treatment:
        """
        Record a payment against one treatment.

        A zero amount changes nothing and returns the treatment as stored.

        Args:
            treatment_id: Treatment to pay
            amount: Amount paid (0 <= amount <= balance)
            note: Optional note stored in the payment history
            expected_version: Treatment version the caller last read

        Returns:
            The updated Treatment

        Raises:
            TreatmentNotFound: If the treatment doesn't exist
            InvalidAmountError: If amount is negative
            OverpaymentError: If amount exceeds the balance
            StaleVersionError: If expected_version is stale
        """
        amount = to_money(amount)

        with cls.atomic():
            patient, treatment = cls._lock_treatment(treatment_id, expected_version)
            if amount < 0:
                raise InvalidAmountError(
                    "Payment amount cannot be negative",
                    details={"amount": str(amount)},
                )
            if amount == 0:
                return treatment

            treatment.apply_payment(amount, note=note)
            treatment.save()
            Patient.shift_totals(patient.pk, paid=amount, outstanding=-amount)

        cls.get_logger().info(
            f"Recorded payment of {amount} on treatment {treatment.pk}",
            extra={
                "treatment_id": str(treatment.pk),
                "patient_id": str(patient.pk),
                "amount": str(amount),
                "payment_status": treatment.payment_status,
            },
        )
        return treatment

    @classmethod
    @retry_on_conflict()
    def delete_treatment(cls, treatment_id: uuid.UUID) -> None:
        """
        Delete a treatment and reverse its share of the patient totals.

        Raises:
            TreatmentNotFound: If the treatment doesn't exist
        """
        with cls.atomic():
            patient, treatment = cls._lock_treatment(treatment_id)
            Patient.shift_totals(
                patient.pk,
                billed=-treatment.total_amount,
                paid=-treatment.amount_paid,
                outstanding=-treatment.balance,
            )
            treatment.delete()

        cls.get_logger().info(
            f"Deleted treatment {treatment_id} of patient {patient.pk}",
            extra={
                "treatment_id": str(treatment_id),
                "patient_id": str(patient.pk),
                "total_amount": str(treatment.total_amount),
                "amount_paid": str(treatment.amount_paid),
            },
        )

    # =========================================================================
    # Patient-level operations
    # =========================================================================

    @classmethod
    @retry_on_conflict()
    def apply_patient_payment(
        cls,
        patient_id: uuid.UUID,
        amount: Decimal | int | str,
        note: str | None = None,
    ) -> None:
        """
        Distribute one payment across a patient's open treatments.

        Treatments are paid oldest first (entry_date, then created_at,
        then id), each receiving min(balance, remaining) until the money
        runs out. The patient's own history records the payment once.

        Args:
            patient_id: Patient paying
            amount: Amount paid (0 < amount <= outstanding_balance)
            note: Optional note for every record written

        Raises:
            PatientNotFound: If the patient doesn't exist
            InvalidAmountError: If amount is not positive
            OverpaymentError: If amount exceeds the outstanding balance
            ValidationError: If the open treatments cannot absorb the
                amount (aggregates out of step with the line items)
        """
        amount = to_money(amount)

        with cls.atomic():
            patient = cls._lock_patient(patient_id)
            if amount <= 0:
                raise InvalidAmountError(
                    "Payment amount must be positive",
                    details={"amount": str(amount)},
                )
            if amount > patient.outstanding_balance:
                raise OverpaymentError(
                    requested=amount,
                    available=patient.outstanding_balance,
                    details={"patient_id": str(patient.pk)},
                )

            treatments = list(
                Treatment.objects.select_for_update()
                .filter(patient_id=patient.pk, payment_status__in=OPEN_STATUSES)
                .order_by("id")
            )
            treatments.sort(key=lambda t: (t.entry_date, t.created_at, t.id))

            allocations = plan_distribution(amount, [t.balance for t in treatments])
            placed = sum(allocations)
            if placed != amount:
                cls.get_logger().warning(
                    f"Patient {patient.pk} outstanding balance is not backed by treatments",
                    extra={
                        "patient_id": str(patient.pk),
                        "amount": str(amount),
                        "placed": str(placed),
                    },
                )
                raise ValidationError(
                    "Payment could not be fully applied to open treatments",
                    error_code="UNALLOCATED_PAYMENT",
                    details={"requested": str(amount), "placed": str(placed)},
                )

            paid_at = timezone.now()
            treatment_note = note or _note_setting("DEFAULT_TREATMENT_PAYMENT_NOTE")
            for treatment, applied in zip(treatments, allocations):
                if applied <= 0:
                    continue
                treatment.apply_payment(applied, note=treatment_note, date=paid_at)
                treatment.save(
                    update_fields=[
                        "amount_paid",
                        "balance",
                        "payment_status",
                        "payment_history",
                        "updated_at",
                    ]
                )

            patient.append_payment(
                amount,
                note=note or _note_setting("DEFAULT_PATIENT_PAYMENT_NOTE"),
                date=paid_at,
            )
            Patient.shift_totals(
                patient.pk,
                paid=amount,
                outstanding=-amount,
                payment_history=patient.payment_history,
            )

        cls.get_logger().info(
            f"Applied payment of {amount} to patient {patient.pk}",
            extra={
                "patient_id": str(patient.pk),
                "amount": str(amount),
                "treatments_paid": sum(1 for applied in allocations if applied > 0),
            },
        )

    @classmethod
    @retry_on_conflict()
    def delete_patient(cls, patient_id: uuid.UUID) -> None:
        """
        Delete a patient and every treatment it owns.

        Raises:
            PatientNotFound: If the patient doesn't exist
        """
        with cls.atomic():
            patient = cls._lock_patient(patient_id)
            deleted, _ = Treatment.objects.filter(patient_id=patient.pk).delete()
            patient.delete()

        cls.get_logger().info(
            f"Deleted patient {patient_id} and {deleted} treatments",
            extra={"patient_id": str(patient_id), "treatments_deleted": deleted},
        )

    @classmethod
    @retry_on_conflict()
    def update_patient_details(cls, patient_id: uuid.UUID, details: PatientParams) -> Patient:
        """
        Replace a patient's contact details.

        Only the contact columns are written; totals and payment history
        are left as stored. A new name is copied onto the patient's
        treatments.

        Raises:
            PatientNotFound: If the patient doesn't exist
        """
        with cls.atomic():
            patient = cls._lock_patient(patient_id)
            renamed = patient.name != details.name
            for field in CONTACT_FIELDS:
                setattr(patient, field, getattr(details, field))
            patient.save(update_fields=[*CONTACT_FIELDS, "updated_at"])
            if renamed:
                Treatment.objects.filter(patient_id=patient.pk).update(
                    patient_name=details.name,
                    version=F("version") + 1,
                    updated_at=timezone.now(),
                )

        cls.get_logger().info(
            f"Updated contact details of patient {patient_id}",
            extra={"patient_id": str(patient_id), "renamed": renamed},
        )
        return patient

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def get_patient(patient_id: uuid.UUID) -> Patient:
        """
        Get patient by ID.

        Raises:
            PatientNotFound: If patient doesn't exist
        """
        patient = Patient.objects.filter(pk=patient_id).first()
        if patient is None:
            raise PatientNotFound(
                f"Patient {patient_id} not found",
                details={"patient_id": str(patient_id)},
            )
        return patient

    @staticmethod
    def get_treatment(treatment_id: uuid.UUID) -> Treatment:
        """
        Get treatment by ID.

        Raises:
            TreatmentNotFound: If treatment doesn't exist
        """
        treatment = Treatment.objects.filter(pk=treatment_id).first()
        if treatment is None:
            raise TreatmentNotFound(
                f"Treatment {treatment_id} not found",
                details={"treatment_id": str(treatment_id)},
            )
        return treatment

    @staticmethod
    def list_treatments_for_patient(patient_id: uuid.UUID) -> list[Treatment]:
        """Treatments of one patient, newest entry first. Empty if none."""
        return list(
            Treatment.objects.filter(patient_id=patient_id).order_by("-entry_date", "-created_at")
        )

    @staticmethod
    def list_all_treatments() -> list[Treatment]:
        """All treatments, newest entry first."""
        return list(Treatment.objects.order_by("-entry_date", "-created_at"))

    @staticmethod
    def list_all_patients() -> list[Patient]:
        """All patients, most recent first visit first."""
        return list(Patient.objects.order_by("-first_visit_date", "-created_at"))

    @classmethod
    def get_patient_with_treatments(cls, patient_id: uuid.UUID) -> PatientLedger:
        """
        Get a patient with all of its treatments.

        Raises:
            PatientNotFound: If patient doesn't exist
        """
        patient = cls.get_patient(patient_id)
        return PatientLedger(
            patient=patient,
            treatments=cls.list_treatments_for_patient(patient.pk),
        )

    @staticmethod
    def get_treatment_receipt(treatment_id: uuid.UUID) -> TreatmentReceipt:
        """
        Get a treatment with its owning patient, for printing a receipt.

        Raises:
            TreatmentNotFound: If treatment doesn't exist
        """
        treatment = Treatment.objects.select_related("patient").filter(pk=treatment_id).first()
        if treatment is None:
            raise TreatmentNotFound(
                f"Treatment {treatment_id} not found",
                details={"treatment_id": str(treatment_id)},
            )
        return TreatmentReceipt(treatment=treatment, patient=treatment.patient)

    @classmethod
    def search_patients(cls, query: str) -> list[Patient]:
        """
        Find patients by name (case-insensitive) or phone substring.

        A blank query returns every patient.
        """
        query = (query or "").strip()
        if not query:
            return cls.list_all_patients()
        return list(
            Patient.objects.filter(Q(name__icontains=query) | Q(phone__icontains=query)).order_by(
                "-first_visit_date", "-created_at"
            )
        )

    @staticmethod
    def list_patients_by_payment_status(status: str) -> list[Patient]:
        """
        Patients whose account is in the given payment status.

        PAID means nothing outstanding; UNPAID means something outstanding
        and nothing paid; PARTIALLY_PAID means both.

        Raises:
            ValidationError: If status is not a PaymentStatus value
        """
        filters: dict[str, Any] = {
            PaymentStatus.PAID.value: Q(outstanding_balance__lte=0),
            PaymentStatus.UNPAID.value: Q(outstanding_balance__gt=0, total_paid=0),
            PaymentStatus.PARTIALLY_PAID.value: Q(outstanding_balance__gt=0, total_paid__gt=0),
        }
        if status not in filters:
            raise ValidationError(
                f"Unknown payment status {status!r}",
                details={"status": [f"Choose one of {', '.join(PaymentStatus.values)}."]},
            )
        return list(Patient.objects.filter(filters[status]).order_by("-first_visit_date", "-created_at"))
