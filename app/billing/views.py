"""
API views for the billing ledger.

Provides:
- PatientListCreateView: List/search patients, create with first treatment
- PatientDetailView: Patient with treatments, cascading delete
- PatientTreatmentCreateView: Add a treatment to a patient
- PatientPaymentView: Distribute a payment over open treatments
- TreatmentListView: All treatments
- TreatmentDetailView: Receipt view, delete with aggregate reversal
- TreatmentPaymentView: Pay one treatment
- DashboardView, PeriodSummaryView, FollowUpListView: Reports

Views translate HTTP to BillingService calls and back. Service errors
propagate to core.exception_handler, which picks the status code.
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .reports import ReportService
from .serializers import (
    DashboardSerializer,
    DateRangeSerializer,
    PatientCreateSerializer,
    PatientLedgerSerializer,
    PatientSerializer,
    PaymentInputSerializer,
    PeriodSummarySerializer,
    TreatmentInputSerializer,
    TreatmentPaymentInputSerializer,
    TreatmentReceiptSerializer,
    TreatmentSerializer,
)
from .services import BillingService

ERROR_RESPONSES = {
    400: OpenApiResponse(description="Validation error (bad amount, overpayment, missing field)"),
    404: OpenApiResponse(description="Patient or treatment not found"),
    409: OpenApiResponse(description="Concurrent modification; retry with fresh data"),
    503: OpenApiResponse(description="Ledger store unavailable"),
}


def _ledger_response(patient_id, status_code=status.HTTP_200_OK) -> Response:
    ledger = BillingService.get_patient_with_treatments(patient_id)
    return Response(PatientLedgerSerializer(ledger).data, status=status_code)


class PatientListCreateView(APIView):
    """
    List or create patients.

    GET /api/v1/billing/patients/?q=<search>&status=<payment status>
    POST /api/v1/billing/patients/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_patients",
        summary="List patients",
        parameters=[
            OpenApiParameter("q", OpenApiTypes.STR, description="Name or phone substring"),
            OpenApiParameter(
                "status",
                OpenApiTypes.STR,
                description="Account payment status (unpaid, partially_paid, paid)",
            ),
        ],
        responses={200: PatientSerializer(many=True), 400: ERROR_RESPONSES[400]},
        tags=["Billing - Patients"],
    )
    def get(self, request):
        query = request.query_params.get("q")
        payment_status = request.query_params.get("status")

        if payment_status:
            patients = BillingService.list_patients_by_payment_status(payment_status)
            if query:
                matching = {p.pk for p in BillingService.search_patients(query)}
                patients = [p for p in patients if p.pk in matching]
        elif query:
            patients = BillingService.search_patients(query)
        else:
            patients = BillingService.list_all_patients()

        return Response(PatientSerializer(patients, many=True).data)

    @extend_schema(
        operation_id="create_patient",
        summary="Create patient with first treatment",
        request=PatientCreateSerializer,
        responses={201: PatientLedgerSerializer, **ERROR_RESPONSES},
        tags=["Billing - Patients"],
    )
    def post(self, request):
        serializer = PatientCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        patient, treatment = serializer.to_params()

        patient_id = BillingService.create_patient_with_treatment(patient, treatment)
        return _ledger_response(patient_id, status.HTTP_201_CREATED)


class PatientDetailView(APIView):
    """
    GET /api/v1/billing/patients/{patient_id}/
    DELETE /api/v1/billing/patients/{patient_id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_patient",
        summary="Get patient with treatments",
        responses={200: PatientLedgerSerializer, 404: ERROR_RESPONSES[404]},
        tags=["Billing - Patients"],
    )
    def get(self, request, patient_id):
        return _ledger_response(patient_id)

    @extend_schema(
        operation_id="delete_patient",
        summary="Delete patient and all treatments",
        responses={204: None, **ERROR_RESPONSES},
        tags=["Billing - Patients"],
    )
    def delete(self, request, patient_id):
        BillingService.delete_patient(patient_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PatientTreatmentCreateView(APIView):
    """POST /api/v1/billing/patients/{patient_id}/treatments/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="add_treatment",
        summary="Add treatment to patient",
        request=TreatmentInputSerializer,
        responses={201: TreatmentSerializer, **ERROR_RESPONSES},
        tags=["Billing - Treatments"],
    )
    def post(self, request, patient_id):
        serializer = TreatmentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        treatment_id = BillingService.add_treatment(patient_id, serializer.to_params())
        treatment = BillingService.get_treatment(treatment_id)
        return Response(TreatmentSerializer(treatment).data, status=status.HTTP_201_CREATED)


class PatientPaymentView(APIView):
    """
    Apply one payment across a patient's open treatments, oldest first.

    POST /api/v1/billing/patients/{patient_id}/payments/

    Request body:
        {"amount": "600.00", "note": "Cash"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="apply_patient_payment",
        summary="Apply patient payment",
        request=PaymentInputSerializer,
        responses={200: PatientLedgerSerializer, **ERROR_RESPONSES},
        tags=["Billing - Payments"],
    )
    def post(self, request, patient_id):
        serializer = PaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        BillingService.apply_patient_payment(patient_id, **serializer.validated_data)
        return _ledger_response(patient_id)


class TreatmentListView(APIView):
    """GET /api/v1/billing/treatments/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_treatments",
        summary="List all treatments",
        responses={200: TreatmentSerializer(many=True)},
        tags=["Billing - Treatments"],
    )
    def get(self, request):
        treatments = BillingService.list_all_treatments()
        return Response(TreatmentSerializer(treatments, many=True).data)


class TreatmentDetailView(APIView):
    """
    GET /api/v1/billing/treatments/{treatment_id}/
    DELETE /api/v1/billing/treatments/{treatment_id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_treatment_receipt",
        summary="Get treatment receipt",
        responses={200: TreatmentReceiptSerializer, 404: ERROR_RESPONSES[404]},
        tags=["Billing - Treatments"],
    )
    def get(self, request, treatment_id):
        receipt = BillingService.get_treatment_receipt(treatment_id)
        return Response(TreatmentReceiptSerializer(receipt).data)

    @extend_schema(
        operation_id="delete_treatment",
        summary="Delete treatment",
        responses={204: None, **ERROR_RESPONSES},
        tags=["Billing - Treatments"],
    )
    def delete(self, request, treatment_id):
        BillingService.delete_treatment(treatment_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TreatmentPaymentView(APIView):
    """
    POST /api/v1/billing/treatments/{treatment_id}/payments/

    Request body:
        {"amount": "250.00", "note": "Card", "expected_version": 2}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="record_treatment_payment",
        summary="Record treatment payment",
        request=TreatmentPaymentInputSerializer,
        responses={200: TreatmentSerializer, **ERROR_RESPONSES},
        tags=["Billing - Payments"],
    )
    def post(self, request, treatment_id):
        serializer = TreatmentPaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        treatment = BillingService.record_treatment_payment(treatment_id, **serializer.validated_data)
        return Response(TreatmentSerializer(treatment).data)


class DashboardView(APIView):
    """GET /api/v1/billing/reports/dashboard/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_dashboard",
        summary="Dashboard statistics",
        responses={200: DashboardSerializer},
        tags=["Billing - Reports"],
    )
    def get(self, request):
        data = {
            "patients": ReportService.patient_stats(),
            "treatments": ReportService.treatment_stats(),
            "recent_treatments": ReportService.recent_treatments(),
        }
        return Response(DashboardSerializer(data).data)


class PeriodSummaryView(APIView):
    """GET /api/v1/billing/reports/summary/?start=<iso>&end=<iso>"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_period_summary",
        summary="Summary for a date range",
        parameters=[DateRangeSerializer],
        responses={200: PeriodSummarySerializer, 400: ERROR_RESPONSES[400]},
        tags=["Billing - Reports"],
    )
    def get(self, request):
        params = DateRangeSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        summary = ReportService.period_summary(**params.validated_data)
        return Response(PeriodSummarySerializer(summary).data)


class FollowUpListView(APIView):
    """GET /api/v1/billing/reports/follow-ups/?start=<iso>&end=<iso>"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_follow_ups",
        summary="Treatments with follow-ups in a date range",
        parameters=[DateRangeSerializer],
        responses={200: TreatmentSerializer(many=True), 400: ERROR_RESPONSES[400]},
        tags=["Billing - Reports"],
    )
    def get(self, request):
        params = DateRangeSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        treatments = ReportService.follow_ups_between(**params.validated_data)
        return Response(TreatmentSerializer(treatments, many=True).data)
