"""Weekly billing cycle: quota generation (Tuesday) and overdue run (Friday)"""

import copy
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from billing_ledger.domain.balance import project_financing
from billing_ledger.domain.classification import is_outstanding
from billing_ledger.domain.exceptions import QuotaOverflowError
from billing_ledger.domain.models import (
    BillingRecord,
    Financing,
    FinancingStatus,
    GenerationResult,
    OverdueResult,
    PaymentStatus,
    PenaltyMode,
)
from billing_ledger.domain.money import Number, ZERO
from billing_ledger.domain.penalties import days_late, penalty_amount
from billing_ledger.domain.schedule import due_date_for_quota

logger = logging.getLogger(__name__)

CLOSED_STATUSES = frozenset({FinancingStatus.COMPLETADO, FinancingStatus.INACTIVO})


def quota_receipt_number(reference_date: date, financing_id: Optional[int], quota_number: int) -> str:
    return f"SIM-{reference_date:%Y%m%d}-{financing_id}-{quota_number}"


def next_sequence(records: Iterable[BillingRecord]) -> int:
    return max((r.sequence for r in records), default=0) + 1


def next_quota_number(financing: Financing, records: Iterable[BillingRecord]) -> int:
    """
    First quota number that has neither been paid nor billed.

    Settled records touch every quota they covered; unsettled ones touch their own.
    """
    highest_touched = max((r.last_quota_touched for r in records), default=0)
    return max(financing.paid_quotas, highest_touched) + 1


def _due_date(financing: Financing, quota_number: int) -> date:
    return due_date_for_quota(financing.start_date, financing.payment_frequency, quota_number)


def first_unsettled_due_date(financing: Financing) -> date:
    return _due_date(financing, min(financing.paid_quotas + 1, financing.total_quotas))


def has_outstanding_overdue(records: Iterable[BillingRecord]) -> bool:
    return any(is_outstanding(r) and r.status == PaymentStatus.RETRASADO for r in records)


def _reserve_quota(financing: Financing, quota_number: int) -> None:
    if quota_number > financing.total_quotas:
        raise QuotaOverflowError(quota_number, financing.total_quotas)


def generate_tuesday(
    financing: Financing,
    records: Iterable[BillingRecord],
    reference_date: date,
) -> GenerationResult:
    """
    Billing day: create pending records so the customer always holds a bill
    for the next quota.

    Requirements:
    - The next quota is the first one neither paid nor billed
    - Quotas are billed until one falls due after reference_date, so a late
      run catches up on missed weeks and a run on the contract's start day
      still bills quota 1
    - Running twice for the same reference date creates nothing the second
      time: after a run the last billed quota is due after reference_date
    - A fully scheduled financing is a no-op; a fully paid one becomes completado

    Inputs are not mutated; the result carries a copy of the financing.
    """
    financing = copy.deepcopy(financing)
    existing = list(records)
    result = GenerationResult(financing=financing)

    if financing.paid_quotas >= financing.total_quotas:
        financing.status = FinancingStatus.COMPLETADO
        result.fully_scheduled = True
        return result

    if financing.status in CLOSED_STATUSES:
        return result

    billed = {r.quota_number for r in existing}

    while True:
        quota_number = next_quota_number(financing, existing + result.new_records)
        try:
            _reserve_quota(financing, quota_number)
        except QuotaOverflowError:
            result.fully_scheduled = True
            break
        if quota_number > 1 and _due_date(financing, quota_number - 1) > reference_date:
            break
        if quota_number in billed:
            break

        record = BillingRecord(
            financing_id=financing.id,
            quota_number=quota_number,
            amount=financing.quota_amount_for(quota_number),
            due_date=_due_date(financing, quota_number),
            status=PaymentStatus.PENDIENTE,
            sequence=next_sequence(existing + result.new_records),
            receipt_number=quota_receipt_number(reference_date, financing.id, quota_number),
            is_generated=True,
        )
        result.new_records.append(record)
        billed.add(quota_number)

    financing.next_due_date = first_unsettled_due_date(financing)

    if result.new_records:
        logger.info(
            "Quotas generated",
            extra={
                "financing_id": financing.id,
                "quota_numbers": [r.quota_number for r in result.new_records],
                "reference_date": reference_date.isoformat(),
            },
        )
    return result


def apply_friday_overdue(
    financing: Financing,
    records: Iterable[BillingRecord],
    reference_date: date,
    penalty_percentage: Optional[Number] = None,
    mode: PenaltyMode = PenaltyMode.FLAT,
    update_existing_only: bool = False,
) -> OverdueResult:
    """
    Deadline day: turn unpaid quotas past their due date into penalized overdue quotas.

    Requirements:
    - Only unsettled `pendiente`/`retrasado` records with due_date < reference_date
    - Quotas already covered by carried credit are skipped
    - Penalty is charged on the pending part of the quota (quota minus credit applied)
    - Re-running for a later date refreshes days_late and the penalty in place;
      total_late_fees moves by the difference, never by a second charge
    - Settled records are never touched
    - update_existing_only refreshes records already `retrasado` without converting
      new ones (the billing-day refresh)

    Inputs are not mutated; updated copies are returned.
    """
    financing = copy.deepcopy(financing)
    records = [copy.deepcopy(r) for r in records]
    percentage = financing.late_fee_percentage if penalty_percentage is None else penalty_percentage
    projection = project_financing(financing, records)
    result = OverdueResult(financing=financing)

    for record in sorted(records, key=lambda r: r.quota_number):
        if not is_outstanding(record) or record.due_date >= reference_date:
            continue
        if update_existing_only and record.status != PaymentStatus.RETRASADO:
            continue

        pending = projection.balance_due(record.quota_number)
        if pending <= ZERO:
            continue

        late = days_late(record.due_date, reference_date)
        penalty = penalty_amount(pending, late, percentage, mode)
        was_pending = record.status == PaymentStatus.PENDIENTE

        financing.total_late_fees += penalty - record.late_fee_amount
        record.status = PaymentStatus.RETRASADO
        record.days_late = late
        record.late_fee_amount = penalty
        result.total_penalty += penalty

        if was_pending:
            result.newly_overdue.append(record)
        else:
            result.updated_records.append(record)

    if financing.status not in CLOSED_STATUSES and has_outstanding_overdue(records):
        financing.status = FinancingStatus.EN_MORA

    if result.newly_overdue or result.updated_records:
        logger.info(
            "Overdue quotas processed",
            extra={
                "financing_id": financing.id,
                "newly_overdue": len(result.newly_overdue),
                "updated": len(result.updated_records),
                "total_penalty": str(result.total_penalty),
                "reference_date": reference_date.isoformat(),
            },
        )
    return result


def preview_overdue(
    financing: Financing,
    records: Iterable[BillingRecord],
    reference_date: date,
    penalty_percentage: Optional[Number] = None,
    mode: PenaltyMode = PenaltyMode.FLAT,
) -> OverdueResult:
    """What an overdue run would do on reference_date; callers must not persist it"""
    return apply_friday_overdue(financing, records, reference_date, penalty_percentage, mode)


def penalty_total(results: List[OverdueResult]) -> Decimal:
    return sum((r.total_penalty for r in results), ZERO)
