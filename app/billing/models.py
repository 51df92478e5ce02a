"""
Ledger models for clinic billing.

This module defines the two collections of the billing ledger:
- Patient: Aggregate root holding billed/paid/outstanding totals
- Treatment: Line item with its own amounts and payment status

The patient's totals are stored, not computed on read. They are kept
equal to the sums over its treatments by BillingService, which updates
both in the same transaction:

    patient.total_billed        == sum(t.total_amount for t in treatments)
    patient.total_paid          == sum(t.amount_paid for t in treatments)
    patient.outstanding_balance == sum(t.balance for t in treatments)

Usage:
    from billing.models import OPEN_STATUSES, Patient, Treatment

    open_treatments = Treatment.objects.filter(
        patient=patient,
        payment_status__in=OPEN_STATUSES,
    )

Note:
    Do not write the money fields directly. Go through
    billing.services.BillingService.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from .derivation import PaymentStatus, derive_treatment_state, to_money
from .exceptions import InvalidAmountError, OverpaymentError
from .types import PaymentRecord

if TYPE_CHECKING:
    import datetime
    from decimal import Decimal

__all__ = ["PaymentStatus", "Patient", "Treatment", "OPEN_STATUSES"]

# Treatments that can still receive money
OPEN_STATUSES = (PaymentStatus.UNPAID, PaymentStatus.PARTIALLY_PAID)


def _money_field(help_text: str, **kwargs) -> models.DecimalField:
    return models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text=help_text,
        **kwargs,
    )


class PaymentHistoryMixin(models.Model):
    """
    Append-only JSON log of PaymentRecord entries.

    Fields:
        payment_history: List of serialized PaymentRecord dicts, oldest first
    """

    payment_history = models.JSONField(
        default=list,
        blank=True,
        help_text="Append-only list of payments (amount, date, note)",
    )

    class Meta:
        abstract = True

    @property
    def payment_records(self) -> list[PaymentRecord]:
        """Stored history as PaymentRecord objects."""
        return [PaymentRecord.from_dict(entry) for entry in self.payment_history]

    def append_payment(
        self,
        amount: Decimal,
        note: str | None = None,
        date: datetime.datetime | None = None,
    ) -> PaymentRecord:
        """Append a record to the in-memory history. Caller saves."""
        record = PaymentRecord(amount=amount, date=date or timezone.now(), note=note)
        self.payment_history = [*self.payment_history, record.to_dict()]
        return record


class Patient(UUIDPrimaryKeyMixin, VersionedMixin, PaymentHistoryMixin, BaseModel):
    """
    A clinic patient and the aggregate state of their account.

    Created together with its first treatment. The three money fields are
    moved by F() increments whenever a treatment is added, paid or
    deleted.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        name, phone: Contact details
        age, gender, date_of_birth: Optional demographics
        first_visit_date: Entry date of the first treatment
        total_billed: Sum of treatment totals
        total_paid: Sum of treatment payments
        outstanding_balance: total_billed - total_paid
        payment_history: Payments applied to the patient as a whole
        version: Optimistic locking counter (from VersionedMixin)
        created_at, updated_at: Timestamps (from BaseModel)
    """

    name = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Patient's full name",
    )
    phone = models.CharField(
        max_length=32,
        help_text="Contact phone number",
    )
    age = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="Age in years",
    )
    gender = models.CharField(
        max_length=32,
        blank=True,
        default="",
    )
    date_of_birth = models.DateField(
        null=True,
        blank=True,
    )
    first_visit_date = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Entry date of the patient's first treatment",
    )

    total_billed = _money_field("Sum of total_amount over all treatments", default=0)
    total_paid = _money_field("Sum of amount_paid over all treatments", default=0)
    outstanding_balance = _money_field("total_billed - total_paid", default=0)

    class Meta:
        ordering = ["-first_visit_date"]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_billed__gte=0),
                name="billing_patient_total_billed_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(total_paid__gte=0),
                name="billing_patient_total_paid_non_negative",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.name} ({self.phone})"

    @property
    def payment_status(self) -> str:
        """Account-level status derived from the aggregates."""
        return derive_treatment_state(self.total_billed, self.total_paid).status

    @classmethod
    def shift_totals(
        cls,
        patient_id,
        billed: Decimal = 0,
        paid: Decimal = 0,
        outstanding: Decimal = 0,
        **extra,
    ) -> int:
        """
        Move a patient's aggregates by the given deltas in one UPDATE.

        Bumps the version so optimistic readers see the change.

        Returns:
            Number of rows updated (0 if the patient is gone)
        """
        return cls.objects.filter(pk=patient_id).update(
            total_billed=F("total_billed") + billed,
            total_paid=F("total_paid") + paid,
            outstanding_balance=F("outstanding_balance") + outstanding,
            version=F("version") + 1,
            updated_at=timezone.now(),
            **extra,
        )


class Treatment(UUIDPrimaryKeyMixin, VersionedMixin, PaymentHistoryMixin, BaseModel):
    """
    One billable treatment belonging to a patient.

    total_amount is fixed at creation. amount_paid only grows, through
    apply_payment. balance and payment_status are always re-derived from
    the two amounts.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        patient: Owning patient (PROTECT; removal goes through the service)
        patient_name: Patient name at the time of entry
        entry_date: When the treatment was recorded
        diagnosis, treatment_plan, tooth_number: Clinical notes
        total_amount: Price of the treatment (positive)
        amount_paid: Paid so far (0 <= amount_paid <= total_amount)
        balance: total_amount - amount_paid
        payment_status: Derived from the amounts
        follow_up_date: Optional scheduled follow-up
        payment_history: Payments applied to this treatment

    Constraints:
        - total_amount > 0
        - amount_paid >= 0
        - amount_paid <= total_amount
    """

    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name="treatments",
        help_text="Patient this treatment belongs to",
    )
    patient_name = models.CharField(
        max_length=255,
        help_text="Patient name at the time of entry",
    )
    entry_date = models.DateTimeField(
        default=timezone.now,
        help_text="When the treatment was recorded",
    )

    diagnosis = models.CharField(max_length=255)
    treatment_plan = models.TextField(blank=True, default="")
    tooth_number = models.CharField(max_length=32, blank=True, default="")

    total_amount = _money_field("Price of the treatment")
    amount_paid = _money_field("Amount paid so far", default=0)
    balance = _money_field("total_amount - amount_paid")
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
        db_index=True,
    )

    follow_up_date = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Scheduled follow-up visit",
    )

    class Meta:
        ordering = ["-entry_date"]
        indexes = [
            models.Index(fields=["patient", "entry_date"], name="billing_trt_patient_entry_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gt=0),
                name="billing_treatment_total_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(amount_paid__gte=0),
                name="billing_treatment_amount_paid_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(amount_paid__lte=F("total_amount")),
                name="billing_treatment_amount_paid_within_total",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.diagnosis}: {self.amount_paid}/{self.total_amount} ({self.get_payment_status_display()})"

    def derive_state(self) -> None:
        """Recompute balance and payment_status from the amounts."""
        state = derive_treatment_state(self.total_amount, self.amount_paid)
        self.balance = state.balance
        self.payment_status = state.status

    def apply_payment(
        self,
        amount: Decimal,
        note: str | None = None,
        date: datetime.datetime | None = None,
    ) -> PaymentRecord:
        """
        Apply a payment to this treatment in memory.

        Increases amount_paid, re-derives balance and status and appends a
        PaymentRecord. The caller saves the treatment and moves the
        patient's aggregates in the same transaction.

        Args:
            amount: Positive amount, at most the current balance
            note: Optional note stored with the record
            date: Payment time (default: now)

        Returns:
            The appended PaymentRecord

        Raises:
            InvalidAmountError: If amount is not positive
            OverpaymentError: If amount exceeds the balance
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError(
                "Payment amount must be positive",
                details={"amount": str(amount)},
            )
        if amount > self.balance:
            raise OverpaymentError(
                requested=amount,
                available=self.balance,
                details={"treatment_id": str(self.pk)},
            )

        self.amount_paid = self.amount_paid + amount
        self.derive_state()
        return self.append_payment(amount, note=note, date=date)
