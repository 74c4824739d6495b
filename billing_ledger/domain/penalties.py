"""Late-payment penalty calculation"""

from datetime import date
from decimal import Decimal

from billing_ledger.domain.exceptions import InvalidScheduleError
from billing_ledger.domain.models import PenaltyMode
from billing_ledger.domain.money import Number, ZERO, to_money

HUNDRED = Decimal("100")


def days_late(due_date: date, reference_date: date) -> int:
    """Whole days elapsed past the due date, never negative"""
    return max(0, (reference_date - due_date).days)


def pending_quota_amount(quota_amount: Number, credit_applied: Number = ZERO) -> Decimal:
    """Part of a quota still owed once prior credit is applied to it"""
    return max(ZERO, to_money(quota_amount) - to_money(credit_applied))


def penalty_amount(
    pending_amount: Number,
    late_days: int,
    percentage: Number,
    mode: PenaltyMode = PenaltyMode.FLAT,
) -> Decimal:
    """
    Penalty owed on the unpaid part of an overdue quota.

    The business rule is a one-time charge of `percentage` once the quota crosses
    its deadline (FLAT). PER_DAY multiplies that charge by the days late and exists
    only for what-if previews; it must be requested explicitly.

    Example:
        20.00 pending, 8 days late, 10% -> FLAT 2.00, PER_DAY 16.00
    """
    rate = Decimal(str(percentage)) if isinstance(percentage, float) else Decimal(percentage)
    if rate < 0 or rate > HUNDRED:
        raise InvalidScheduleError(f"Penalty percentage must be between 0 and 100, got {rate}")

    pending = to_money(pending_amount)
    if late_days <= 0 or pending <= ZERO:
        return ZERO

    charge = pending * rate / HUNDRED
    if PenaltyMode(mode) == PenaltyMode.PER_DAY:
        charge = charge * late_days
    return to_money(charge)
