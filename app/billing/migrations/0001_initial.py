import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Patient",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "payment_history",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Append-only list of payments (amount, date, note)",
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        db_index=True, help_text="Patient's full name", max_length=255
                    ),
                ),
                (
                    "phone",
                    models.CharField(help_text="Contact phone number", max_length=32),
                ),
                (
                    "age",
                    models.PositiveSmallIntegerField(
                        blank=True, help_text="Age in years", null=True
                    ),
                ),
                ("gender", models.CharField(blank=True, default="", max_length=32)),
                ("date_of_birth", models.DateField(blank=True, null=True)),
                (
                    "first_visit_date",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        help_text="Entry date of the patient's first treatment",
                    ),
                ),
                (
                    "total_billed",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Sum of total_amount over all treatments",
                        max_digits=12,
                    ),
                ),
                (
                    "total_paid",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Sum of amount_paid over all treatments",
                        max_digits=12,
                    ),
                ),
                (
                    "outstanding_balance",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="total_billed - total_paid",
                        max_digits=12,
                    ),
                ),
            ],
            options={
                "ordering": ["-first_visit_date"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_billed__gte", 0)),
                        name="billing_patient_total_billed_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_paid__gte", 0)),
                        name="billing_patient_total_paid_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Treatment",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "payment_history",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Append-only list of payments (amount, date, note)",
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "patient_name",
                    models.CharField(
                        help_text="Patient name at the time of entry", max_length=255
                    ),
                ),
                (
                    "entry_date",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the treatment was recorded",
                    ),
                ),
                ("diagnosis", models.CharField(max_length=255)),
                ("treatment_plan", models.TextField(blank=True, default="")),
                ("tooth_number", models.CharField(blank=True, default="", max_length=32)),
                (
                    "total_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Price of the treatment",
                        max_digits=12,
                    ),
                ),
                (
                    "amount_paid",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Amount paid so far",
                        max_digits=12,
                    ),
                ),
                (
                    "balance",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="total_amount - amount_paid",
                        max_digits=12,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("unpaid", "Unpaid"),
                            ("partially_paid", "Partially Paid"),
                            ("paid", "Paid"),
                        ],
                        db_index=True,
                        default="unpaid",
                        max_length=20,
                    ),
                ),
                (
                    "follow_up_date",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="Scheduled follow-up visit",
                        null=True,
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        help_text="Patient this treatment belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="treatments",
                        to="billing.patient",
                    ),
                ),
            ],
            options={
                "ordering": ["-entry_date"],
                "indexes": [
                    models.Index(
                        fields=["patient", "entry_date"],
                        name="billing_trt_patient_entry_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gt", 0)),
                        name="billing_treatment_total_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount_paid__gte", 0)),
                        name="billing_treatment_amount_paid_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount_paid__lte", models.F("total_amount"))
                        ),
                        name="billing_treatment_amount_paid_within_total",
                    ),
                ],
            },
        ),
    ]
