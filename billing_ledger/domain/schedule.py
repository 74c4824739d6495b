"""Quota schedule generation for installment financing"""

import math
from datetime import date, timedelta
from decimal import Decimal
from typing import List

from billing_ledger.domain.exceptions import InvalidScheduleError
from billing_ledger.domain.models import PaymentFrequency, QuotaPlanRow, Schedule
from billing_ledger.domain.money import Number, ZERO, to_money
from billing_ledger.utils.date_utils import add_months

PERIOD_DAYS = {
    PaymentFrequency.WEEKLY: 7,
    PaymentFrequency.BIWEEKLY: 15,
}

# Average number of weeks in a month, as used by the sales desk
WEEKS_PER_MONTH = 4.33


def due_date_for_quota(start_date: date, frequency: PaymentFrequency, quota_number: int) -> date:
    """
    Due date of a quota, counted from the contract start.

    Quota n falls due n periods after start_date. Monthly contracts step by calendar
    month from the start date each time, so day-of-month never drifts.
    """
    frequency = PaymentFrequency(frequency)
    if frequency == PaymentFrequency.MONTHLY:
        return add_months(start_date, quota_number)
    return start_date + timedelta(days=PERIOD_DAYS[frequency] * quota_number)


def total_quotas_for_months(months: int, frequency: PaymentFrequency) -> int:
    """Number of quotas a contract of `months` months produces at the given frequency"""
    if months <= 0:
        raise InvalidScheduleError(f"Financing months must be positive, got {months}")

    frequency = PaymentFrequency(frequency)
    if frequency == PaymentFrequency.WEEKLY:
        return math.ceil(months * WEEKS_PER_MONTH)
    if frequency == PaymentFrequency.BIWEEKLY:
        return months * 2
    return months


def compute_schedule(
    total_amount: Number,
    periods: int,
    frequency: PaymentFrequency,
    start_date: date,
) -> Schedule:
    """
    Split a financed amount into equal quotas.

    Requirements:
    - quota_amount = total / periods with banker's rounding to cents
    - Last quota absorbs the rounding remainder so the schedule sums to the total exactly
    - First due date is one period after start_date

    Raises:
        InvalidScheduleError: On non-positive amount or periods, unknown frequency,
            or an amount too small to give every quota at least one cent

    Example:
        100.00 over 3 quotas -> [33.33, 33.33, 33.34]
    """
    try:
        frequency = PaymentFrequency(frequency)
    except ValueError:
        raise InvalidScheduleError(f"Unknown payment frequency: {frequency}") from None

    total = to_money(total_amount)
    if total <= ZERO:
        raise InvalidScheduleError(f"Total amount must be positive, got {total}")
    if periods <= 0:
        raise InvalidScheduleError(f"Number of quotas must be positive, got {periods}")

    quota_amount = to_money(total / Decimal(periods))
    last_quota_amount = total - quota_amount * (periods - 1)

    if quota_amount <= ZERO or last_quota_amount <= ZERO:
        raise InvalidScheduleError(f"Amount {total} is too small to split into {periods} quotas")

    return Schedule(
        total_amount=total,
        total_quotas=periods,
        quota_amount=quota_amount,
        last_quota_amount=last_quota_amount,
        frequency=frequency,
        start_date=start_date,
        next_due_date=due_date_for_quota(start_date, frequency, 1),
    )


def compute_schedule_for_months(
    total_amount: Number,
    months: int,
    frequency: PaymentFrequency,
    start_date: date,
) -> Schedule:
    return compute_schedule(total_amount, total_quotas_for_months(months, frequency), frequency, start_date)


def quota_amount_for(schedule: Schedule, quota_number: int) -> Decimal:
    if quota_number == schedule.total_quotas:
        return schedule.last_quota_amount
    return schedule.quota_amount


def build_quota_plan(schedule: Schedule) -> List[QuotaPlanRow]:
    """Full list of quotas with due dates and amounts, for previews"""
    return [
        QuotaPlanRow(
            quota_number=n,
            due_date=due_date_for_quota(schedule.start_date, schedule.frequency, n),
            amount=quota_amount_for(schedule, n),
        )
        for n in range(1, schedule.total_quotas + 1)
    ]
