"""
URL configuration for the clinic billing application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/billing/               - Billing ledger endpoints
        patients/                  - Patient list (search, status filter) / create with first treatment
        patients/{id}/             - Patient ledger (patient + treatments) / cascading delete
        patients/{id}/treatments/  - Add treatment to existing patient
        patients/{id}/payments/    - Patient-level payment (distributed oldest debt first)
        treatments/                - All treatments
        treatments/{id}/           - Treatment receipt / delete treatment
        treatments/{id}/payments/  - Record payment against one treatment
        reports/dashboard/         - Patient and treatment statistics
        reports/summary/           - Period summary (revenue, unpaid, status counts)
        reports/follow-ups/        - Follow-up appointments in a date range

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Billing ledger
    path("billing/", include("billing.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Clinic Billing Admin"
admin.site.site_title = "Clinic Billing"
admin.site.index_title = "Patients and treatments"
