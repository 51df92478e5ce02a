"""
Tests for the billing admin.

Patient edits from the admin change form must not write ledger columns.
"""

from decimal import Decimal

from django.contrib import admin
from django.test import RequestFactory

from billing.models import Patient, Treatment
from billing.services import BillingService


class TestPatientAdminSave:
    """Tests for PatientAdmin.save_model()."""

    def _save(self, patient, staff_user):
        request = RequestFactory().post("/admin/billing/patient/")
        request.user = staff_user
        admin.site._registry[Patient].save_model(request, patient, None, True)

    def test_contact_edit_keeps_concurrent_payment(self, unpaid_patient, staff_user, assert_consistent):
        stale = Patient.objects.get(pk=unpaid_patient)
        BillingService.apply_patient_payment(unpaid_patient, Decimal("400"))

        stale.phone = "555-0199"
        self._save(stale, staff_user)

        patient = assert_consistent(unpaid_patient)
        assert patient.phone == "555-0199"
        assert patient.total_paid == Decimal("400.00")
        assert patient.outstanding_balance == Decimal("600.00")
        assert len(patient.payment_history) == 1

    def test_rename_reaches_treatments(self, unpaid_patient, staff_user):
        patient = Patient.objects.get(pk=unpaid_patient)

        patient.name = "Jane Doe-Smith"
        self._save(patient, staff_user)

        assert list(
            Treatment.objects.filter(patient_id=unpaid_patient).values_list("patient_name", flat=True)
        ) == ["Jane Doe-Smith"]

    def test_ledger_fields_are_read_only(self):
        model_admin = admin.site._registry[Patient]

        for field in ("total_billed", "total_paid", "outstanding_balance", "payment_history", "version"):
            assert field in model_admin.readonly_fields
