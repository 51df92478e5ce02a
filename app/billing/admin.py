"""
Django admin configuration for billing models.

Ledger fields are read-only here. Money moves only through
BillingService, which keeps patient totals in step with treatments.

Key features:
- Treatments are view-only (no add/change/delete)
- Patient contact details are editable through BillingService, money
  fields are not
- Patients cannot be added or deleted from admin
"""

from django.contrib import admin

from .models import Patient, Treatment
from .services import BillingService
from .types import PatientParams

LEDGER_FIELDS = ("total_billed", "total_paid", "outstanding_balance")


class TreatmentInline(admin.TabularInline):
    model = Treatment
    fields = ["entry_date", "diagnosis", "total_amount", "amount_paid", "balance", "payment_status"]
    readonly_fields = fields
    extra = 0
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    """
    Admin configuration for Patient.

    Contact details can be corrected; aggregates and history cannot.
    """

    list_display = [
        "name",
        "phone",
        "first_visit_date",
        *LEDGER_FIELDS,
    ]
    search_fields = ["name", "phone"]
    readonly_fields = ["id", "first_visit_date", *LEDGER_FIELDS, "payment_history", "version", "created_at", "updated_at"]
    ordering = ["-first_visit_date"]
    inlines = [TreatmentInline]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "name", "phone", "age", "gender", "date_of_birth"),
            },
        ),
        (
            "Ledger",
            {
                "fields": ("first_visit_date", *LEDGER_FIELDS, "payment_history", "version"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        """Write only the contact fields, under the patient row lock."""
        BillingService.update_patient_details(
            obj.pk,
            PatientParams(
                name=obj.name,
                phone=obj.phone,
                age=obj.age,
                gender=obj.gender,
                date_of_birth=obj.date_of_birth,
            ),
        )


@admin.register(Treatment)
class TreatmentAdmin(admin.ModelAdmin):
    """Admin configuration for Treatment. View only."""

    list_display = [
        "diagnosis",
        "patient_name",
        "entry_date",
        "total_amount",
        "amount_paid",
        "balance",
        "payment_status",
        "follow_up_date",
    ]
    list_filter = ["payment_status", "entry_date"]
    search_fields = ["patient_name", "diagnosis"]
    ordering = ["-entry_date"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
