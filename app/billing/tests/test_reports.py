"""
Tests for ReportService.

Rows are written with the model factories; reports only read them.
"""

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

import pytest
from django.utils import timezone

from billing.models import PaymentStatus
from billing.reports import ReportService
from billing.tests.factories import PatientFactory, TreatmentFactory
from core.exceptions import ValidationError

MID_MARCH = datetime(2026, 3, 15, 12, 0, tzinfo=dt_timezone.utc)


class TestPatientStats:
    def test_counts_new_patients_this_month(self, db):
        PatientFactory(first_visit_date=MID_MARCH - timedelta(days=20))
        PatientFactory(first_visit_date=MID_MARCH.replace(day=1, hour=0))
        PatientFactory(first_visit_date=MID_MARCH - timedelta(days=1))

        stats = ReportService.patient_stats(today=MID_MARCH)

        assert stats.total == 3
        assert stats.new_this_month == 2

    def test_empty_store(self, db):
        stats = ReportService.patient_stats()

        assert (stats.total, stats.new_this_month) == (0, 0)


class TestTreatmentStats:
    def test_sums_paid_and_balances(self, db):
        TreatmentFactory(total_amount=Decimal("1000.00"), amount_paid=Decimal("400.00"))
        TreatmentFactory(total_amount=Decimal("150.00"), amount_paid=Decimal("150.00"))
        TreatmentFactory(total_amount=Decimal("200.00"))

        stats = ReportService.treatment_stats()

        assert stats.total_revenue == Decimal("550.00")
        assert stats.unpaid_amount == Decimal("800.00")
        assert stats.total_treatments == 3

    def test_empty_store_sums_to_zero(self, db):
        stats = ReportService.treatment_stats()

        assert stats.total_revenue == Decimal("0.00")
        assert stats.unpaid_amount == Decimal("0.00")
        assert stats.total_treatments == 0


class TestRecentTreatments:
    def test_newest_first_with_limit(self, db):
        now = timezone.now()
        treatments = [TreatmentFactory(entry_date=now - timedelta(days=days)) for days in range(4)]

        recent = ReportService.recent_treatments(limit=2)

        assert [t.pk for t in recent] == [treatments[0].pk, treatments[1].pk]

    def test_default_limit_from_settings(self, db, settings):
        settings.BILLING = {**settings.BILLING, "RECENT_TREATMENTS_LIMIT": 3}
        for _ in range(5):
            TreatmentFactory()

        assert len(ReportService.recent_treatments()) == 3


class TestFollowUps:
    def test_follow_ups_between_inclusive_and_sorted(self, db):
        later = TreatmentFactory(follow_up_date=MID_MARCH + timedelta(days=2))
        at_start = TreatmentFactory(follow_up_date=MID_MARCH)
        TreatmentFactory(follow_up_date=MID_MARCH + timedelta(days=30))
        TreatmentFactory(follow_up_date=None)

        found = ReportService.follow_ups_between(MID_MARCH, MID_MARCH + timedelta(days=7))

        assert [t.pk for t in found] == [at_start.pk, later.pk]

    def test_inverted_range_rejected(self, db):
        with pytest.raises(ValidationError):
            ReportService.follow_ups_between(MID_MARCH, MID_MARCH - timedelta(days=1))

    def test_patients_with_upcoming_follow_ups(self, db):
        now = timezone.now()
        upcoming = PatientFactory(name="Ana")
        TreatmentFactory(patient=upcoming, follow_up_date=now + timedelta(days=3))
        TreatmentFactory(patient=upcoming, follow_up_date=now + timedelta(days=9))
        past = PatientFactory(name="Bo")
        TreatmentFactory(patient=past, follow_up_date=now - timedelta(days=3))

        patients = ReportService.patients_with_upcoming_follow_ups(now=now)

        assert [p.pk for p in patients] == [upcoming.pk]


class TestPeriodSummary:
    def test_summarizes_treatments_in_range(self, db):
        TreatmentFactory(
            entry_date=MID_MARCH,
            total_amount=Decimal("1000.00"),
            amount_paid=Decimal("400.00"),
        )
        TreatmentFactory(
            entry_date=MID_MARCH + timedelta(days=1),
            total_amount=Decimal("100.00"),
            amount_paid=Decimal("100.00"),
        )
        TreatmentFactory(entry_date=MID_MARCH + timedelta(days=40), total_amount=Decimal("999.00"))

        summary = ReportService.period_summary(MID_MARCH, MID_MARCH + timedelta(days=7))

        assert summary.revenue == Decimal("500.00")
        assert summary.unpaid == Decimal("600.00")
        assert summary.treatment_count == 2
        assert summary.status_counts == {
            PaymentStatus.UNPAID.value: 0,
            PaymentStatus.PARTIALLY_PAID.value: 1,
            PaymentStatus.PAID.value: 1,
        }

    def test_empty_range(self, db):
        summary = ReportService.period_summary(MID_MARCH, MID_MARCH)

        assert summary.revenue == Decimal("0.00")
        assert summary.treatment_count == 0
        assert set(summary.status_counts.values()) == {0}

    def test_inverted_range_rejected(self, db):
        with pytest.raises(ValidationError):
            ReportService.period_summary(MID_MARCH, MID_MARCH - timedelta(seconds=1))
