"""
Seed the ledger with two sample patients.

Usage:
    python manage.py seed_sample_data
    python manage.py seed_sample_data --force   # seed even if patients exist
"""

from decimal import Decimal

from django.core.management.base import BaseCommand

from billing.models import Patient
from billing.services import BillingService
from billing.types import PatientParams, TreatmentParams

SAMPLE_PATIENTS = [
    (
        {"name": "John Doe", "phone": "555-0101", "age": 35, "gender": "Male"},
        {
            "diagnosis": "Routine cleaning",
            "treatment_plan": "Scaling and polishing",
            "total_amount": Decimal("150.00"),
            "amount_paid": Decimal("150.00"),
        },
    ),
    (
        {"name": "Jane Smith", "phone": "555-0102", "age": 28, "gender": "Female"},
        {
            "diagnosis": "Cavity",
            "treatment_plan": "Composite filling",
            "tooth_number": "14",
            "total_amount": Decimal("200.00"),
            "amount_paid": Decimal("100.00"),
        },
    ),
]


class Command(BaseCommand):
    help = "Create sample patients with one treatment each"

    def add_arguments(self, parser):
        parser.add_argument(
            "--force",
            action="store_true",
            help="Seed even when patients already exist",
        )

    def handle(self, *args, **options):
        if Patient.objects.exists() and not options["force"]:
            self.stdout.write(self.style.WARNING("Patients already exist, skipping (use --force)"))
            return

        for patient, treatment in SAMPLE_PATIENTS:
            patient_id = BillingService.create_patient_with_treatment(
                PatientParams(**patient),
                TreatmentParams(**treatment),
            )
            self.stdout.write(f"Created {patient['name']} ({patient_id})")

        self.stdout.write(self.style.SUCCESS(f"Seeded {len(SAMPLE_PATIENTS)} patients"))
