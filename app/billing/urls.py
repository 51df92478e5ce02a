"""
URL configuration for billing app.

API Documentation Groups (following [App Name] - [Group Name] pattern):

Billing - Patients:
    GET  /patients/                              - List or search patients
    POST /patients/                              - Create patient with first treatment
    GET  /patients/{patient_id}/                 - Patient with treatments
    DELETE /patients/{patient_id}/               - Delete patient and treatments

Billing - Treatments:
    POST /patients/{patient_id}/treatments/      - Add treatment
    GET  /treatments/                            - List all treatments
    GET  /treatments/{treatment_id}/             - Treatment receipt
    DELETE /treatments/{treatment_id}/           - Delete treatment

Billing - Payments:
    POST /patients/{patient_id}/payments/        - Distribute patient payment
    POST /treatments/{treatment_id}/payments/    - Pay one treatment

Billing - Reports:
    GET /reports/dashboard/                      - Dashboard statistics
    GET /reports/summary/                        - Date range summary
    GET /reports/follow-ups/                     - Follow-ups in date range

All routes are prefixed with /api/v1/billing/ when included in the main URLconf.
"""

from django.urls import path

from billing.views import (
    DashboardView,
    FollowUpListView,
    PatientDetailView,
    PatientListCreateView,
    PatientPaymentView,
    PatientTreatmentCreateView,
    PeriodSummaryView,
    TreatmentDetailView,
    TreatmentListView,
    TreatmentPaymentView,
)

app_name = "billing"

urlpatterns = [
    # Patients
    path("patients/", PatientListCreateView.as_view(), name="patient-list"),
    path("patients/<uuid:patient_id>/", PatientDetailView.as_view(), name="patient-detail"),
    path(
        "patients/<uuid:patient_id>/treatments/",
        PatientTreatmentCreateView.as_view(),
        name="patient-treatments",
    ),
    path(
        "patients/<uuid:patient_id>/payments/",
        PatientPaymentView.as_view(),
        name="patient-payments",
    ),
    # Treatments
    path("treatments/", TreatmentListView.as_view(), name="treatment-list"),
    path(
        "treatments/<uuid:treatment_id>/",
        TreatmentDetailView.as_view(),
        name="treatment-detail",
    ),
    path(
        "treatments/<uuid:treatment_id>/payments/",
        TreatmentPaymentView.as_view(),
        name="treatment-payments",
    ),
    # Reports
    path("reports/dashboard/", DashboardView.as_view(), name="report-dashboard"),
    path("reports/summary/", PeriodSummaryView.as_view(), name="report-summary"),
    path("reports/follow-ups/", FollowUpListView.as_view(), name="report-follow-ups"),
]
