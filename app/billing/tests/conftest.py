"""
Pytest fixtures for billing tests.

Sections:
    - Ledger Fixtures: Patients created through BillingService
    - Assertion Fixtures: Ledger consistency checks
    - API Fixtures: Authenticated DRF client
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from billing.models import Patient, Treatment
from billing.services import BillingService
from billing.tests.factories import PatientParamsFactory, TreatmentParamsFactory


# ==========================================================================
# Ledger Fixtures
# ==========================================================================


@pytest.fixture
def make_patient(db):
    """
    Create a patient through the service from (total, paid) pairs.

    Treatments are entered one day apart, oldest first, so the first pair
    is the first debt paid by a patient-level payment.

    Usage:
        patient_id = make_patient((300, 0), (500, 0), (200, 0))
    """

    def _make(*amounts, **patient_fields):
        amounts = amounts or ((Decimal("100.00"), Decimal("0.00")),)
        start = timezone.now() - timedelta(days=len(amounts) + 1)
        first_total, first_paid = amounts[0]

        patient_id = BillingService.create_patient_with_treatment(
            PatientParamsFactory(**patient_fields),
            TreatmentParamsFactory(
                total_amount=first_total,
                amount_paid=first_paid,
                entry_date=start,
            ),
        )
        for offset, (total, paid) in enumerate(amounts[1:], start=1):
            BillingService.add_treatment(
                patient_id,
                TreatmentParamsFactory(
                    total_amount=total,
                    amount_paid=paid,
                    entry_date=start + timedelta(days=offset),
                ),
            )
        return patient_id

    return _make


@pytest.fixture
def unpaid_patient(make_patient):
    """Patient with a single unpaid 1000.00 treatment."""
    return make_patient((Decimal("1000.00"), Decimal("0.00")))


@pytest.fixture
def three_treatment_patient(make_patient):
    """Patient with unpaid treatments of 300, 500 and 200, oldest first."""
    return make_patient(
        (Decimal("300.00"), Decimal("0.00")),
        (Decimal("500.00"), Decimal("0.00")),
        (Decimal("200.00"), Decimal("0.00")),
    )


# ==========================================================================
# Assertion Fixtures
# ==========================================================================


@pytest.fixture
def assert_consistent():
    """
    Assert a patient's totals equal the sums over its treatments.

    Also checks every treatment's balance and status derivation.
    """

    def _check(patient_id):
        patient = Patient.objects.get(pk=patient_id)
        treatments = list(Treatment.objects.filter(patient_id=patient_id))

        assert patient.total_billed == sum((t.total_amount for t in treatments), Decimal("0"))
        assert patient.total_paid == sum((t.amount_paid for t in treatments), Decimal("0"))
        assert patient.outstanding_balance == patient.total_billed - patient.total_paid
        assert patient.outstanding_balance == sum((t.balance for t in treatments), Decimal("0"))
        for treatment in treatments:
            assert treatment.balance == treatment.total_amount - treatment.amount_paid
            if treatment.balance <= 0:
                assert treatment.payment_status == "paid"
            elif treatment.amount_paid > 0:
                assert treatment.payment_status == "partially_paid"
            else:
                assert treatment.payment_status == "unpaid"
        return patient

    return _check


# ==========================================================================
# API Fixtures
# ==========================================================================


@pytest.fixture
def staff_user(db):
    return get_user_model().objects.create_user(username="reception", password="testpass123")


@pytest.fixture
def api_client(staff_user):
    """DRF client authenticated as a clinic staff user."""
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client
