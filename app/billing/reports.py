"""
Read-only reports over the billing ledger.

Everything here is computed with database aggregates; nothing writes.

Usage:
    from billing.reports import ReportService

    stats = ReportService.treatment_stats()
    stats.unpaid_amount  # Decimal("100.00")
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import Count, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.exceptions import ValidationError
from core.services import BaseService

from .derivation import PaymentStatus
from .models import Patient, Treatment
from .types import PatientStats, PeriodSummary, TreatmentStats

if TYPE_CHECKING:
    import datetime

    from django.db.models import QuerySet


def sum_money(field: str) -> Coalesce:
    return Coalesce(
        Sum(field),
        Value(Decimal("0.00")),
        output_field=models.DecimalField(max_digits=14, decimal_places=2),
    )


def _check_range(start: datetime.datetime, end: datetime.datetime) -> None:
    if start > end:
        raise ValidationError(
            "Start must not be after end",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )


class ReportService(BaseService):
    """Dashboard and period reports. All methods are static."""

    @staticmethod
    def patient_stats(today: datetime.datetime | None = None) -> PatientStats:
        """
        Count patients, and those whose first visit is in the current month.

        Args:
            today: Reference time (default: now)
        """
        today = timezone.localtime(today or timezone.now())
        month_start = today.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return PatientStats(
            total=Patient.objects.count(),
            new_this_month=Patient.objects.filter(first_visit_date__gte=month_start).count(),
        )

    @staticmethod
    def treatment_stats() -> TreatmentStats:
        """Money collected, money still owed and treatment count, clinic-wide."""
        totals = Treatment.objects.aggregate(
            total_revenue=sum_money("amount_paid"),
            unpaid_amount=sum_money("balance"),
            total_treatments=Count("id"),
        )
        return TreatmentStats(**totals)

    @staticmethod
    def recent_treatments(limit: int | None = None) -> list[Treatment]:
        """Most recently entered treatments (default limit from settings)."""
        if limit is None:
            limit = getattr(settings, "BILLING", {}).get("RECENT_TREATMENTS_LIMIT", 5)
        return list(Treatment.objects.order_by("-entry_date", "-created_at")[:limit])

    @staticmethod
    def follow_ups_between(
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[Treatment]:
        """Treatments with a follow-up scheduled in [start, end], soonest first."""
        _check_range(start, end)
        return list(
            Treatment.objects.filter(follow_up_date__range=(start, end))
            .select_related("patient")
            .order_by("follow_up_date")
        )

    @staticmethod
    def patients_with_upcoming_follow_ups(
        now: datetime.datetime | None = None,
    ) -> list[Patient]:
        """Patients with at least one follow-up still ahead of now."""
        now = now or timezone.now()
        upcoming = Treatment.objects.filter(follow_up_date__gt=now).values("patient_id")
        return list(Patient.objects.filter(pk__in=upcoming).order_by("name"))

    @staticmethod
    def period_summary(
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> PeriodSummary:
        """
        Totals for treatments entered in [start, end].

        Returns:
            PeriodSummary with collected revenue, unpaid balance, treatment
            count and a count per payment status (every status present,
            zero when unused)
        """
        _check_range(start, end)
        treatments: QuerySet[Treatment] = Treatment.objects.filter(entry_date__range=(start, end))

        totals = treatments.aggregate(
            revenue=sum_money("amount_paid"),
            unpaid=sum_money("balance"),
            treatment_count=Count("id"),
        )
        status_counts = {status: 0 for status in PaymentStatus.values}
        for row in treatments.order_by().values("payment_status").annotate(count=Count("id")):
            status_counts[row["payment_status"]] = row["count"]

        return PeriodSummary(start=start, end=end, status_counts=status_counts, **totals)
