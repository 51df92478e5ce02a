"""
Serializers for the billing API.

Provides:
- PaymentRecordSerializer: One payment history entry
- PatientSerializer / TreatmentSerializer: Read-only model output
- PatientLedgerSerializer / TreatmentReceiptSerializer: Composite views
- PatientCreateSerializer / TreatmentInputSerializer: Create input
- PaymentInputSerializer / TreatmentPaymentInputSerializer: Payment input
- DateRangeSerializer: start/end query parameters for reports
- Report serializers for dashboard and period summaries

Input serializers only check shape. Ledger rules (amount ranges, blank
names) are enforced by billing.types and BillingService, which raise
core errors rendered by the application exception handler.
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from .models import Patient, Treatment
from .types import PatientParams, TreatmentParams

MONEY = {"max_digits": 12, "decimal_places": 2}


class PaymentRecordSerializer(serializers.Serializer):
    amount = serializers.DecimalField(**MONEY, read_only=True)
    date = serializers.DateTimeField(read_only=True)
    note = serializers.CharField(read_only=True, allow_null=True)


class TreatmentSerializer(serializers.ModelSerializer):
    """Read-only serializer for treatment responses."""

    patient_id = serializers.UUIDField(read_only=True)
    payments = PaymentRecordSerializer(source="payment_records", many=True, read_only=True)

    class Meta:
        model = Treatment
        fields = [
            "id",
            "patient_id",
            "patient_name",
            "entry_date",
            "diagnosis",
            "treatment_plan",
            "tooth_number",
            "total_amount",
            "amount_paid",
            "balance",
            "payment_status",
            "follow_up_date",
            "payments",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PatientSerializer(serializers.ModelSerializer):
    """Read-only serializer for patient responses."""

    payment_status = serializers.CharField(read_only=True)
    payments = PaymentRecordSerializer(source="payment_records", many=True, read_only=True)

    class Meta:
        model = Patient
        fields = [
            "id",
            "name",
            "phone",
            "age",
            "gender",
            "date_of_birth",
            "first_visit_date",
            "total_billed",
            "total_paid",
            "outstanding_balance",
            "payment_status",
            "payments",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PatientLedgerSerializer(serializers.Serializer):
    """A patient with all of its treatments."""

    patient = PatientSerializer(read_only=True)
    treatments = TreatmentSerializer(many=True, read_only=True)


class TreatmentReceiptSerializer(serializers.Serializer):
    """A treatment with its owning patient."""

    treatment = TreatmentSerializer(read_only=True)
    patient = PatientSerializer(read_only=True)


class TreatmentInputSerializer(serializers.Serializer):
    """
    Input for a new treatment.

    Usage:
        serializer = TreatmentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.to_params()
    """

    diagnosis = serializers.CharField(max_length=255, allow_blank=True)
    total_amount = serializers.DecimalField(**MONEY)
    amount_paid = serializers.DecimalField(**MONEY, required=False, default=0)
    entry_date = serializers.DateTimeField(required=False)
    treatment_plan = serializers.CharField(required=False, allow_blank=True, default="")
    tooth_number = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    follow_up_date = serializers.DateTimeField(required=False, allow_null=True, default=None)

    def to_params(self) -> TreatmentParams:
        return TreatmentParams(**self.validated_data)


class PatientCreateSerializer(serializers.Serializer):
    """Input for a new patient and its first treatment."""

    name = serializers.CharField(max_length=255, allow_blank=True)
    phone = serializers.CharField(max_length=32, allow_blank=True)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, default=None)
    gender = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    date_of_birth = serializers.DateField(required=False, allow_null=True, default=None)
    treatment = TreatmentInputSerializer()

    def to_params(self) -> tuple[PatientParams, TreatmentParams]:
        data: dict[str, Any] = dict(self.validated_data)
        treatment = TreatmentParams(**data.pop("treatment"))
        return PatientParams(**data), treatment


class PaymentInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(**MONEY)
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class TreatmentPaymentInputSerializer(PaymentInputSerializer):
    expected_version = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=1,
        default=None,
        help_text="Treatment version last read by the client; 409 if it changed",
    )


class DateRangeSerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["start"] > attrs["end"]:
            raise serializers.ValidationError({"end": "End must not be before start."})
        return attrs


class PatientStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    new_this_month = serializers.IntegerField()


class TreatmentStatsSerializer(serializers.Serializer):
    total_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    unpaid_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_treatments = serializers.IntegerField()


class DashboardSerializer(serializers.Serializer):
    patients = PatientStatsSerializer()
    treatments = TreatmentStatsSerializer()
    recent_treatments = TreatmentSerializer(many=True)


class PeriodSummarySerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    unpaid = serializers.DecimalField(max_digits=14, decimal_places=2)
    treatment_count = serializers.IntegerField()
    status_counts = serializers.DictField(child=serializers.IntegerField())
