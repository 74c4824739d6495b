"""Allocation of an incoming payment against the quota schedule"""

from decimal import Decimal, ROUND_FLOOR
from typing import Sequence, Tuple

from billing_ledger.domain.exceptions import InvalidPaymentError, InvalidScheduleError
from billing_ledger.domain.models import Allocation
from billing_ledger.domain.money import Number, ZERO, to_money


def _validated(incoming_amount: Number, available_credit: Number) -> Tuple[Decimal, Decimal]:
    incoming = to_money(incoming_amount)
    credit = to_money(available_credit)

    if incoming <= ZERO:
        raise InvalidPaymentError(f"Payment amount must be positive, got {incoming}")
    if credit < ZERO:
        raise InvalidPaymentError(f"Available credit cannot be negative, got {credit}")
    return incoming, credit


def allocate(incoming_amount: Number, quota_amount: Number, available_credit: Number = ZERO) -> Allocation:
    """
    Work out how many quotas a payment covers and what is carried forward.

    Algorithm:
    1. pool = incoming + credit carried from earlier payments
    2. quotas_covered = floor(pool / quota), at least 1: a short payment still
       touches the current quota instead of being rejected
    3. applied = min(pool, quotas_covered * quota)
    4. advance_credit = pool - applied (always in [0, quota))
    5. total_applied = incoming, the money actually received in this transaction

    Pure function: persisting credit and quota counts is the caller's job.

    Raises:
        InvalidPaymentError: incoming <= 0 or negative credit
        InvalidScheduleError: quota <= 0

    Example:
        45.00 against 20.00 quotas, no credit -> 2 quotas, 40.00 applied, 5.00 credit
    """
    quota = to_money(quota_amount)
    if quota <= ZERO:
        raise InvalidScheduleError(f"Quota amount must be positive, got {quota}")
    incoming, credit = _validated(incoming_amount, available_credit)

    pool = incoming + credit
    full_quotas = int((pool / quota).to_integral_value(rounding=ROUND_FLOOR))
    quotas_covered = max(1, full_quotas)

    applied = min(pool, quota * quotas_covered)

    return Allocation(
        quotas_covered=quotas_covered,
        amount_applied_to_quotas=applied,
        advance_credit=pool - applied,
        total_applied=incoming,
        quota_amount=quota,
    )


def allocate_against_schedule(
    incoming_amount: Number,
    quota_amounts: Sequence[Number],
    available_credit: Number = ZERO,
) -> Allocation:
    """
    Same rule as `allocate`, walked over the quotas a contract has left.

    Each quota is charged at its own amount, so the last one's rounding remainder
    is honoured, and coverage stops at the final quota: money beyond it stays as
    advance credit.

    Example:
        100.00 against the last two 20.00 quotas -> 2 quotas, 40.00 applied, 60.00 credit
    """
    amounts = [to_money(a) for a in quota_amounts]
    if not amounts:
        raise InvalidPaymentError("No quotas left to pay")
    if any(a <= ZERO for a in amounts):
        raise InvalidScheduleError("Quota amounts must be positive")
    incoming, credit = _validated(incoming_amount, available_credit)

    pool = incoming + credit
    quotas_covered = 0
    applied = ZERO
    for amount in amounts:
        if applied + amount > pool:
            break
        applied += amount
        quotas_covered += 1

    if quotas_covered == 0:
        quotas_covered, applied = 1, pool

    return Allocation(
        quotas_covered=quotas_covered,
        amount_applied_to_quotas=applied,
        advance_credit=pool - applied,
        total_applied=incoming,
        quota_amount=amounts[0],
    )
