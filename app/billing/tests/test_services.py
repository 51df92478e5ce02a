"""
Tests for BillingService lifecycle operations and reads.

Distribution and deletion have their own modules
(test_distribution.py, test_deletion.py).
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.utils import timezone

from billing.exceptions import (
    InvalidAmountError,
    OverpaymentError,
    PatientNotFound,
    TreatmentNotFound,
)
from billing.models import Patient, PaymentStatus, Treatment
from billing.services import BillingService
from billing.tests.factories import PatientParamsFactory, TreatmentParamsFactory
from core.exceptions import StaleVersionError, TransactionConflictError, ValidationError


class TestCreatePatientWithTreatment:
    """Tests for BillingService.create_patient_with_treatment()."""

    def test_initializes_totals_from_treatment(self, db, assert_consistent):
        patient_id = BillingService.create_patient_with_treatment(
            PatientParamsFactory(name="Jane Smith"),
            TreatmentParamsFactory(total_amount=Decimal("200.00"), amount_paid=Decimal("100.00")),
        )

        patient = assert_consistent(patient_id)
        assert patient.name == "Jane Smith"
        assert patient.total_billed == Decimal("200.00")
        assert patient.total_paid == Decimal("100.00")
        assert patient.outstanding_balance == Decimal("100.00")

    def test_first_visit_is_treatment_entry_date(self, db):
        entry = timezone.now() - timedelta(days=30)

        patient_id = BillingService.create_patient_with_treatment(
            PatientParamsFactory(),
            TreatmentParamsFactory(entry_date=entry),
        )

        assert Patient.objects.get(pk=patient_id).first_visit_date == entry

    def test_treatment_denormalizes_patient_name(self, db):
        patient_id = BillingService.create_patient_with_treatment(
            PatientParamsFactory(name="John Doe"),
            TreatmentParamsFactory(),
        )

        treatment = Treatment.objects.get(patient_id=patient_id)
        assert treatment.patient_name == "John Doe"

    def test_initial_payment_recorded_in_history(self, db):
        patient_id = BillingService.create_patient_with_treatment(
            PatientParamsFactory(),
            TreatmentParamsFactory(total_amount=Decimal("150.00"), amount_paid=Decimal("150.00")),
        )

        treatment = Treatment.objects.get(patient_id=patient_id)
        records = treatment.payment_records
        assert treatment.payment_status == PaymentStatus.PAID
        assert len(records) == 1
        assert records[0].amount == Decimal("150.00")
        assert records[0].note == "Initial payment"

    def test_unpaid_treatment_has_empty_history(self, db):
        patient_id = BillingService.create_patient_with_treatment(
            PatientParamsFactory(),
            TreatmentParamsFactory(amount_paid=Decimal("0.00")),
        )

        treatment = Treatment.objects.get(patient_id=patient_id)
        assert treatment.payment_history == []
        assert treatment.payment_status == PaymentStatus.UNPAID

    def test_invalid_params_create_nothing(self, db):
        with pytest.raises(ValidationError):
            BillingService.create_patient_with_treatment(
                PatientParamsFactory(),
                TreatmentParamsFactory(total_amount=Decimal("1000.00"), amount_paid=Decimal("1000.01")),
            )

        assert Patient.objects.count() == 0
        assert Treatment.objects.count() == 0


class TestAddTreatment:
    """Tests for BillingService.add_treatment()."""

    def test_increments_patient_totals(self, unpaid_patient, assert_consistent):
        BillingService.add_treatment(
            unpaid_patient,
            TreatmentParamsFactory(total_amount=Decimal("500.00"), amount_paid=Decimal("200.00")),
        )

        patient = assert_consistent(unpaid_patient)
        assert patient.total_billed == Decimal("1500.00")
        assert patient.total_paid == Decimal("200.00")
        assert patient.outstanding_balance == Decimal("1300.00")

    def test_returns_treatment_id(self, unpaid_patient):
        treatment_id = BillingService.add_treatment(unpaid_patient, TreatmentParamsFactory())

        assert Treatment.objects.get(pk=treatment_id).patient_id == unpaid_patient

    def test_bumps_patient_version(self, unpaid_patient):
        before = Patient.objects.get(pk=unpaid_patient).version

        BillingService.add_treatment(unpaid_patient, TreatmentParamsFactory())

        assert Patient.objects.get(pk=unpaid_patient).version == before + 1

    def test_missing_patient_raises_not_found(self, db):
        with pytest.raises(PatientNotFound):
            BillingService.add_treatment(uuid.uuid4(), TreatmentParamsFactory())

        assert Treatment.objects.count() == 0


class TestRecordTreatmentPayment:
    """Tests for BillingService.record_treatment_payment()."""

    def test_partial_payment(self, unpaid_patient, assert_consistent):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        updated = BillingService.record_treatment_payment(treatment.pk, Decimal("400.00"), note="Card")

        assert updated.amount_paid == Decimal("400.00")
        assert updated.balance == Decimal("600.00")
        assert updated.payment_status == PaymentStatus.PARTIALLY_PAID
        assert updated.payment_records[-1].note == "Card"
        patient = assert_consistent(unpaid_patient)
        assert patient.total_paid == Decimal("400.00")
        assert patient.outstanding_balance == Decimal("600.00")

    def test_accepts_string_amount(self, unpaid_patient):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        updated = BillingService.record_treatment_payment(treatment.pk, "1000")

        assert updated.payment_status == PaymentStatus.PAID

    def test_zero_amount_is_noop(self, unpaid_patient):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        result = BillingService.record_treatment_payment(treatment.pk, Decimal("0"))

        assert result.amount_paid == Decimal("0.00")
        assert result.payment_history == []
        assert result.version == treatment.version
        assert Patient.objects.get(pk=unpaid_patient).total_paid == Decimal("0.00")

    def test_negative_amount_rejected(self, unpaid_patient):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        with pytest.raises(InvalidAmountError):
            BillingService.record_treatment_payment(treatment.pk, Decimal("-1"))

    def test_overpayment_rejected_and_nothing_changes(self, make_patient, assert_consistent):
        patient_id = make_patient((Decimal("1000.00"), Decimal("400.00")))
        treatment = Treatment.objects.get(patient_id=patient_id)

        with pytest.raises(OverpaymentError):
            BillingService.record_treatment_payment(treatment.pk, Decimal("600.01"))

        treatment.refresh_from_db()
        assert treatment.balance == Decimal("600.00")
        patient = assert_consistent(patient_id)
        assert patient.total_paid == Decimal("400.00")

    def test_missing_treatment_raises_not_found(self, db):
        with pytest.raises(TreatmentNotFound):
            BillingService.record_treatment_payment(uuid.uuid4(), Decimal("1"))

    def test_oversized_amount_is_invalid(self, unpaid_patient):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        with pytest.raises(InvalidAmountError):
            BillingService.record_treatment_payment(treatment.pk, "1e12")

        assert Treatment.objects.get(pk=treatment.pk).amount_paid == Decimal("0.00")

    def test_stale_expected_version_conflicts_without_retry(self, unpaid_patient, settings):
        settings.BILLING = {**settings.BILLING, "CONFLICT_MAX_ATTEMPTS": 3}
        treatment = Treatment.objects.get(patient_id=unpaid_patient)
        BillingService.record_treatment_payment(treatment.pk, Decimal("100"))

        with mock.patch.object(
            BillingService,
            "_lock_treatment",
            wraps=BillingService._lock_treatment,
        ) as lock:
            with pytest.raises(StaleVersionError) as exc_info:
                BillingService.record_treatment_payment(
                    treatment.pk,
                    Decimal("100"),
                    expected_version=treatment.version,
                )

        assert lock.call_count == 1
        assert "attempts" not in exc_info.value.details
        assert exc_info.value.details["current_version"] == treatment.version + 1
        assert Treatment.objects.get(pk=treatment.pk).amount_paid == Decimal("100.00")

    def test_current_expected_version_succeeds(self, unpaid_patient):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        updated = BillingService.record_treatment_payment(
            treatment.pk,
            Decimal("100"),
            expected_version=treatment.version,
        )

        assert updated.version == treatment.version + 1


class TestUpdatePatientDetails:
    """Tests for BillingService.update_patient_details()."""

    def test_writes_contact_fields(self, unpaid_patient):
        before = Patient.objects.get(pk=unpaid_patient)

        updated = BillingService.update_patient_details(
            unpaid_patient,
            PatientParamsFactory(name=before.name, phone="555-0142", age=41),
        )

        stored = Patient.objects.get(pk=unpaid_patient)
        assert stored.phone == "555-0142"
        assert stored.age == 41
        assert updated.version == before.version + 1

    def test_leaves_totals_from_concurrent_payment(self, unpaid_patient, assert_consistent):
        BillingService.apply_patient_payment(unpaid_patient, Decimal("250"))

        BillingService.update_patient_details(unpaid_patient, PatientParamsFactory())

        patient = assert_consistent(unpaid_patient)
        assert patient.total_paid == Decimal("250.00")
        assert len(patient.payment_history) == 1

    def test_rename_updates_treatment_names(self, make_patient):
        patient_id = make_patient((Decimal("100"), Decimal("0")), (Decimal("200"), Decimal("0")))

        BillingService.update_patient_details(patient_id, PatientParamsFactory(name="Maria Lopez"))

        names = set(Treatment.objects.filter(patient_id=patient_id).values_list("patient_name", flat=True))
        assert names == {"Maria Lopez"}

    def test_missing_patient_raises_not_found(self, db):
        with pytest.raises(PatientNotFound):
            BillingService.update_patient_details(uuid.uuid4(), PatientParamsFactory())


class TestConflictRetry:
    """Mutations re-run when the transaction loses a race."""

    def test_retries_then_succeeds(self, unpaid_patient, settings):
        settings.BILLING = {**settings.BILLING, "CONFLICT_MAX_ATTEMPTS": 3, "CONFLICT_BACKOFF_SECONDS": 0}
        treatment = Treatment.objects.get(patient_id=unpaid_patient)
        original = BillingService._lock_treatment.__func__
        calls = {"count": 0}

        def flaky(cls, *args, **kwargs):
            calls["count"] += 1
            if calls["count"] == 1:
                raise TransactionConflictError("lost race")
            return original(cls, *args, **kwargs)

        with mock.patch.object(BillingService, "_lock_treatment", classmethod(flaky)):
            updated = BillingService.record_treatment_payment(treatment.pk, Decimal("50"))

        assert calls["count"] == 2
        assert updated.amount_paid == Decimal("50.00")
        assert Patient.objects.get(pk=unpaid_patient).total_paid == Decimal("50.00")

    def test_gives_up_after_max_attempts(self, unpaid_patient, settings):
        settings.BILLING = {**settings.BILLING, "CONFLICT_MAX_ATTEMPTS": 3, "CONFLICT_BACKOFF_SECONDS": 0}
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        with mock.patch.object(
            BillingService,
            "_lock_treatment",
            side_effect=TransactionConflictError("lost race"),
        ) as lock:
            with pytest.raises(TransactionConflictError) as exc_info:
                BillingService.record_treatment_payment(treatment.pk, Decimal("50"))

        assert lock.call_count == 3
        assert exc_info.value.details["attempts"] == 3

    def test_validation_errors_are_not_retried(self, unpaid_patient):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        with mock.patch.object(
            BillingService,
            "_lock_treatment",
            wraps=BillingService._lock_treatment,
        ) as lock:
            with pytest.raises(OverpaymentError):
                BillingService.record_treatment_payment(treatment.pk, Decimal("5000"))

        assert lock.call_count == 1


class TestReads:
    """Tests for BillingService read accessors."""

    def test_get_patient(self, unpaid_patient):
        assert BillingService.get_patient(unpaid_patient).pk == unpaid_patient

    def test_get_patient_missing(self, db):
        with pytest.raises(PatientNotFound):
            BillingService.get_patient(uuid.uuid4())

    def test_get_treatment_missing(self, db):
        with pytest.raises(TreatmentNotFound):
            BillingService.get_treatment(uuid.uuid4())

    def test_list_treatments_for_patient_newest_first(self, three_treatment_patient):
        treatments = BillingService.list_treatments_for_patient(three_treatment_patient)

        assert [t.total_amount for t in treatments] == [
            Decimal("200.00"),
            Decimal("500.00"),
            Decimal("300.00"),
        ]

    def test_list_treatments_for_unknown_patient_is_empty(self, db):
        assert BillingService.list_treatments_for_patient(uuid.uuid4()) == []

    def test_list_all_patients_newest_first_visit(self, make_patient):
        older = make_patient((Decimal("100"), Decimal("0")), (Decimal("100"), Decimal("0")))
        newer = make_patient((Decimal("100"), Decimal("0")))

        assert [p.pk for p in BillingService.list_all_patients()] == [newer, older]

    def test_list_all_treatments(self, make_patient):
        make_patient((Decimal("100"), Decimal("0")))
        make_patient((Decimal("100"), Decimal("0")), (Decimal("50"), Decimal("0")))

        assert len(BillingService.list_all_treatments()) == 3

    def test_get_patient_with_treatments(self, three_treatment_patient):
        ledger = BillingService.get_patient_with_treatments(three_treatment_patient)

        assert ledger.patient.pk == three_treatment_patient
        assert len(ledger.treatments) == 3

    def test_get_treatment_receipt(self, unpaid_patient):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)

        receipt = BillingService.get_treatment_receipt(treatment.pk)

        assert receipt.treatment.pk == treatment.pk
        assert receipt.patient.pk == unpaid_patient

    def test_read_back_matches_write(self, unpaid_patient):
        treatment = Treatment.objects.get(patient_id=unpaid_patient)
        written = BillingService.record_treatment_payment(treatment.pk, Decimal("123.45"))

        read = BillingService.get_treatment(treatment.pk)

        assert (read.amount_paid, read.balance, read.payment_status) == (
            written.amount_paid,
            written.balance,
            written.payment_status,
        )

    def test_search_by_name_and_phone(self, make_patient):
        jane = make_patient(name="Jane Smith", phone="555-7777")
        make_patient(name="John Doe", phone="555-1111")

        assert [p.pk for p in BillingService.search_patients("jane")] == [jane]
        assert [p.pk for p in BillingService.search_patients("7777")] == [jane]
        assert len(BillingService.search_patients("")) == 2

    def test_list_patients_by_payment_status(self, make_patient):
        unpaid = make_patient((Decimal("100"), Decimal("0")))
        partial = make_patient((Decimal("100"), Decimal("40")))
        paid = make_patient((Decimal("100"), Decimal("100")))

        assert [p.pk for p in BillingService.list_patients_by_payment_status("unpaid")] == [unpaid]
        assert [p.pk for p in BillingService.list_patients_by_payment_status("partially_paid")] == [partial]
        assert [p.pk for p in BillingService.list_patients_by_payment_status("paid")] == [paid]

    def test_unknown_payment_status_rejected(self, db):
        with pytest.raises(ValidationError):
            BillingService.list_patients_by_payment_status("overdue")
