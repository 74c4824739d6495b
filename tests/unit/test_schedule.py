"""Unit tests for quota schedule generation"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from billing_ledger.domain.exceptions import InvalidScheduleError
from billing_ledger.domain.models import PaymentFrequency
from billing_ledger.domain.schedule import (
    build_quota_plan,
    compute_schedule,
    compute_schedule_for_months,
    due_date_for_quota,
    quota_amount_for,
    total_quotas_for_months,
)


def test_compute_schedule_even_split():
    """Test 4400 over 220 weekly quotas"""
    schedule = compute_schedule(Decimal("4400"), 220, PaymentFrequency.WEEKLY, date(2023, 12, 26))

    assert schedule.total_quotas == 220
    assert schedule.quota_amount == Decimal("20.00")
    assert schedule.last_quota_amount == Decimal("20.00")
    assert schedule.next_due_date == date(2024, 1, 2)


def test_compute_schedule_last_quota_absorbs_remainder():
    schedule = compute_schedule(Decimal("100.00"), 3, PaymentFrequency.MONTHLY, date(2024, 1, 15))

    assert schedule.quota_amount == Decimal("33.33")
    assert schedule.last_quota_amount == Decimal("33.34")
    assert schedule.quota_amount * 2 + schedule.last_quota_amount == Decimal("100.00")


def test_compute_schedule_bankers_rounding():
    """Half-cent quotas round to the even cent"""
    schedule = compute_schedule(Decimal("100.05"), 2, PaymentFrequency.WEEKLY, date(2024, 1, 1))

    assert schedule.quota_amount == Decimal("50.02")
    assert schedule.last_quota_amount == Decimal("50.03")


def test_compute_schedule_accepts_float_amount():
    schedule = compute_schedule(0.3, 3, PaymentFrequency.WEEKLY, date(2024, 1, 1))
    assert schedule.quota_amount == Decimal("0.10")
    assert schedule.last_quota_amount == Decimal("0.10")


@pytest.mark.parametrize(
    "amount,periods,frequency",
    [
        (Decimal("100"), 0, PaymentFrequency.WEEKLY),
        (Decimal("100"), -2, PaymentFrequency.WEEKLY),
        (Decimal("0"), 10, PaymentFrequency.WEEKLY),
        (Decimal("-50"), 10, PaymentFrequency.WEEKLY),
        (Decimal("0.01"), 3, PaymentFrequency.WEEKLY),  # Quota rounds to zero
        (Decimal("100"), 10, "daily"),
    ],
)
def test_compute_schedule_rejects_invalid_input(amount, periods, frequency):
    with pytest.raises(InvalidScheduleError):
        compute_schedule(amount, periods, frequency, date(2024, 1, 1))


def test_due_dates_weekly_and_biweekly():
    start = date(2024, 1, 1)

    assert due_date_for_quota(start, PaymentFrequency.WEEKLY, 1) == start + timedelta(days=7)
    assert due_date_for_quota(start, PaymentFrequency.WEEKLY, 3) == start + timedelta(days=21)
    assert due_date_for_quota(start, PaymentFrequency.BIWEEKLY, 2) == start + timedelta(days=30)


def test_due_dates_monthly_do_not_drift():
    """Test month-end start clamps each month but keeps the original day afterwards"""
    start = date(2024, 1, 31)

    assert due_date_for_quota(start, PaymentFrequency.MONTHLY, 1) == date(2024, 2, 29)
    assert due_date_for_quota(start, PaymentFrequency.MONTHLY, 2) == date(2024, 3, 31)
    assert due_date_for_quota(start, PaymentFrequency.MONTHLY, 12) == date(2025, 1, 31)


def test_total_quotas_for_months():
    assert total_quotas_for_months(12, PaymentFrequency.WEEKLY) == 52
    assert total_quotas_for_months(1, PaymentFrequency.WEEKLY) == 5
    assert total_quotas_for_months(12, PaymentFrequency.BIWEEKLY) == 24
    assert total_quotas_for_months(12, PaymentFrequency.MONTHLY) == 12

    with pytest.raises(InvalidScheduleError):
        total_quotas_for_months(0, PaymentFrequency.MONTHLY)


def test_compute_schedule_for_months():
    schedule = compute_schedule_for_months(Decimal("5200"), 12, PaymentFrequency.WEEKLY, date(2024, 1, 1))

    assert schedule.total_quotas == 52
    assert schedule.quota_amount == Decimal("100.00")


def test_build_quota_plan():
    schedule = compute_schedule(Decimal("100.00"), 3, PaymentFrequency.WEEKLY, date(2024, 1, 1))
    plan = build_quota_plan(schedule)

    assert [row.quota_number for row in plan] == [1, 2, 3]
    assert [row.amount for row in plan] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert plan[-1].due_date == date(2024, 1, 22)
    assert sum(row.amount for row in plan) == schedule.total_amount
    assert quota_amount_for(schedule, 3) == Decimal("33.34")
