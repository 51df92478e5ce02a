"""
Data types for billing operations.

This module defines dataclasses used for type-safe data transfer between
the service layer and its callers (views, tasks, async facade).

Types:
    PaymentRecord: One immutable entry in a payment history
    PatientParams: Demographics for a new patient
    TreatmentParams: Clinical and financial data for a new treatment
    PatientLedger: A patient together with all of its treatments
    TreatmentReceipt: A treatment together with its owning patient
    PatientStats, TreatmentStats, PeriodSummary: Report results
    AggregateDrift, ReconciliationReport: Reconciliation results

Usage:
    from billing.types import PatientParams, TreatmentParams

    patient_id = BillingService.create_patient_with_treatment(
        PatientParams(name="Jane Smith", phone="555-0102"),
        TreatmentParams(diagnosis="Filling", total_amount="200", amount_paid="100"),
    )
"""

from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.exceptions import ValidationError

from .derivation import ZERO, to_money, validate_treatment_amounts

if TYPE_CHECKING:
    import uuid

    from .models import Patient, Treatment


@dataclass(frozen=True)
class PaymentRecord:
    """
    One payment applied to a treatment or directly to a patient.

    Records are append-only. They are stored in the JSON payment_history
    of their owner as {"amount": "150.00", "date": "<ISO-8601>", "note": ...}.

    Attributes:
        amount: Amount paid (positive, two decimal places)
        date: When the payment was recorded (timezone-aware)
        note: Free-text note, e.g. "Initial payment"
    """

    amount: Decimal
    date: datetime.datetime
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage in a JSONField."""
        return {
            "amount": str(self.amount),
            "date": self.date.isoformat(),
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentRecord:
        """Rebuild a record from its stored form."""
        return cls(
            amount=Decimal(data["amount"]),
            date=parse_datetime(data["date"]),
            note=data.get("note"),
        )


@dataclass
class PatientParams:
    """
    Parameters for creating a patient.

    Required Attributes:
        name: Patient's full name
        phone: Contact phone number

    Optional Attributes:
        age: Age in years
        gender: Free-text gender
        date_of_birth: Date of birth
    """

    name: str
    phone: str
    age: int | None = None
    gender: str = ""
    date_of_birth: datetime.date | None = None

    def __post_init__(self) -> None:
        """Validate params after initialization."""
        self.name = (self.name or "").strip()
        self.phone = (self.phone or "").strip()
        errors = {}
        if not self.name:
            errors["name"] = ["This field is required."]
        if not self.phone:
            errors["phone"] = ["This field is required."]
        if self.age is not None and self.age < 0:
            errors["age"] = ["Age cannot be negative."]
        if errors:
            raise ValidationError("Invalid patient details", details=errors)


@dataclass
class TreatmentParams:
    """
    Parameters for recording a treatment.

    Amounts may be given as Decimal, int or numeric strings; they are
    normalized to two-place Decimals and validated on construction.

    Required Attributes:
        diagnosis: What was diagnosed
        total_amount: Price of the treatment (must be positive)

    Optional Attributes:
        amount_paid: Paid up front (0 <= amount_paid <= total_amount)
        entry_date: When the treatment was recorded (default: now)
        treatment_plan: Planned procedure
        tooth_number: Tooth reference
        follow_up_date: Scheduled follow-up visit
    """

    diagnosis: str
    total_amount: Decimal
    amount_paid: Decimal = ZERO
    entry_date: datetime.datetime | None = None
    treatment_plan: str = ""
    tooth_number: str = ""
    follow_up_date: datetime.datetime | None = None

    def __post_init__(self) -> None:
        """Normalize amounts and validate params after initialization."""
        self.diagnosis = (self.diagnosis or "").strip()
        if not self.diagnosis:
            raise ValidationError(
                "Invalid treatment details",
                details={"diagnosis": ["This field is required."]},
            )
        self.total_amount = to_money(self.total_amount, "total_amount")
        self.amount_paid = to_money(self.amount_paid, "amount_paid")
        validate_treatment_amounts(self.total_amount, self.amount_paid)
        if self.entry_date is None:
            self.entry_date = timezone.now()


@dataclass
class PatientLedger:
    """A patient with all of its treatments, newest first."""

    patient: Patient
    treatments: list[Treatment] = field(default_factory=list)


@dataclass
class TreatmentReceipt:
    """A treatment with the patient it belongs to."""

    treatment: Treatment
    patient: Patient

    @property
    def payments(self) -> list[PaymentRecord]:
        return self.treatment.payment_records


@dataclass
class PatientStats:
    total: int
    new_this_month: int


@dataclass
class TreatmentStats:
    total_revenue: Decimal
    unpaid_amount: Decimal
    total_treatments: int


@dataclass
class PeriodSummary:
    """Totals for treatments entered between start and end (inclusive)."""

    start: datetime.datetime
    end: datetime.datetime
    revenue: Decimal
    unpaid: Decimal
    treatment_count: int
    status_counts: dict[str, int] = field(default_factory=dict)


@dataclass
class AggregateDrift:
    """
    Difference between a patient's stored totals and its treatments.

    Attributes hold (stored, expected) pairs for each aggregate.
    """

    patient_id: uuid.UUID
    stored_billed: Decimal
    expected_billed: Decimal
    stored_paid: Decimal
    expected_paid: Decimal
    stored_outstanding: Decimal
    expected_outstanding: Decimal

    def to_dict(self) -> dict[str, str]:
        return {key: str(value) for key, value in asdict(self).items()}


@dataclass
class ReconciliationReport:
    checked: int = 0
    drifted: list[AggregateDrift] = field(default_factory=list)
    healed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "drifted": len(self.drifted),
            "healed": self.healed,
            "patients": [str(drift.patient_id) for drift in self.drifted],
        }
