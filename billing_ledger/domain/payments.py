"""Payment registration against a financing's quota schedule"""

import copy
import logging
from datetime import date
from typing import Iterable, List, Optional

from billing_ledger.domain.allocation import allocate_against_schedule
from billing_ledger.domain.balance import QuotaCursor, project_balances
from billing_ledger.domain.classification import classify, is_outstanding
from billing_ledger.domain.cycle import (
    CLOSED_STATUSES,
    first_unsettled_due_date,
    has_outstanding_overdue,
    next_sequence,
)
from billing_ledger.domain.exceptions import InvalidPaymentError
from billing_ledger.domain.models import (
    BillingRecord,
    Financing,
    FinancingStatus,
    PaymentResult,
    PaymentStatus,
    ReversalResult,
)
from billing_ledger.domain.money import Number, ZERO, to_money
from billing_ledger.domain.penalties import days_late, penalty_amount, pending_quota_amount
from billing_ledger.domain.schedule import due_date_for_quota

logger = logging.getLogger(__name__)


def payment_receipt_number(payment_date: date, counter: int) -> str:
    return f"REC-{payment_date:%Y%m}-{counter:05d}"


def _financing_status(financing: Financing, records: Iterable[BillingRecord]) -> FinancingStatus:
    if financing.paid_quotas >= financing.total_quotas:
        return FinancingStatus.COMPLETADO
    if financing.status == FinancingStatus.INACTIVO:
        return FinancingStatus.INACTIVO
    if has_outstanding_overdue(records):
        return FinancingStatus.EN_MORA
    return FinancingStatus.ACTIVO


def register_payment(
    financing: Financing,
    records: Iterable[BillingRecord],
    incoming_amount: Number,
    payment_date: date,
    receipt_number: Optional[str] = None,
    confirmation_number: Optional[str] = None,
    comments: Optional[str] = None,
) -> PaymentResult:
    """
    Apply one incoming payment to the first unsettled quota.

    Flow:
    1. Validate before touching anything (non-positive amount, closed financing)
    2. Target the first unsettled quota; settle its billed record in place, top up
       its earlier partial payment, or create a new record when it was never billed
    3. Allocate incoming money plus carried credit against the quotas left, so
       coverage never runs past the last quota and the excess stays as credit
    4. A quota already marked overdue keeps its accrued penalty as a fixed charge;
       otherwise lateness and a flat penalty are computed from payment_date
    5. Classify, then advance the financing: paid quotas, credit, totals, status
    6. Billed quotas the payment fully covers are marked abonado

    Must run as one atomic unit per financing: the carried credit is read here and
    written back by the caller.

    Raises:
        InvalidPaymentError: Non-positive amount, or nothing left to pay
    """
    incoming = to_money(incoming_amount)
    if incoming <= ZERO:
        raise InvalidPaymentError(f"Payment amount must be positive, got {incoming}")
    if financing.status in CLOSED_STATUSES or financing.paid_quotas >= financing.total_quotas:
        raise InvalidPaymentError(f"Financing {financing.id} is {financing.status.value} and takes no payments")

    financing = copy.deepcopy(financing)
    records = [copy.deepcopy(r) for r in records]

    target = financing.paid_quotas + 1
    quota_amount = financing.quota_amount_for(target)
    credit = financing.partial_payment_credit
    existing = next((r for r in records if r.quota_number == target), None)

    remaining = [financing.quota_amount_for(n) for n in range(target, financing.total_quotas + 1)]
    allocation = allocate_against_schedule(incoming, remaining, credit)

    carried_penalty = existing is not None and is_outstanding(existing) and existing.status == PaymentStatus.RETRASADO
    due_date = existing.due_date if existing else due_date_for_quota(
        financing.start_date, financing.payment_frequency, target
    )
    late = days_late(due_date, payment_date)

    late_fee = ZERO
    if not carried_penalty and late > 0 and (existing is None or existing.late_fee_amount == ZERO):
        late_fee = penalty_amount(pending_quota_amount(quota_amount, credit), late, financing.late_fee_percentage)

    status = classify(allocation, 0 if carried_penalty else late, target_generated=existing is not None)

    if existing is None:
        record = BillingRecord(
            financing_id=financing.id,
            quota_number=target,
            amount=incoming,
            due_date=due_date,
            sequence=next_sequence(records),
        )
        records.append(record)
    else:
        record = existing
        record.amount = record.amount + incoming if record.is_settled else incoming

    record.status = status
    record.payment_date = payment_date
    record.quotas_covered = allocation.quotas_covered
    record.quota_amount_covered = allocation.amount_applied_to_quotas
    record.advance_credit = allocation.advance_credit
    record.receipt_number = receipt_number or record.receipt_number
    record.confirmation_number = confirmation_number or record.confirmation_number
    record.comments = comments or record.comments
    if late_fee > ZERO:
        record.late_fee_amount = late_fee
        record.days_late = late

    # Credit already sits on the target quota; pour the new money on top of it
    cursor = QuotaCursor(financing.quota_amount_for, financing.total_quotas)
    cursor.position = target
    cursor.balance(target).credit_applied = credit
    cursor.pour(incoming, target)

    covered: List[BillingRecord] = []
    for other in records:
        if other is not record and is_outstanding(other) and target < other.quota_number <= cursor.settled_quotas:
            other.status = PaymentStatus.ABONADO
            other.payment_date = payment_date
            other.amount = ZERO
            other.quota_amount_covered = ZERO
            other.comments = f"Covered by payment on quota {target}"
            covered.append(other)

    financing.paid_quotas = cursor.settled_quotas
    financing.partial_payment_credit = cursor.credit
    financing.total_paid += incoming
    financing.current_balance = max(ZERO, financing.total_amount - financing.total_paid)
    financing.total_late_fees += late_fee
    financing.next_due_date = first_unsettled_due_date(financing)
    financing.status = _financing_status(financing, records)

    logger.info(
        "Payment registered",
        extra={
            "financing_id": financing.id,
            "quota_number": target,
            "amount": str(incoming),
            "status": status.value,
            "quotas_covered": allocation.quotas_covered,
            "advance_credit": str(allocation.advance_credit),
            "late_fee": str(late_fee),
        },
    )

    return PaymentResult(
        financing=financing,
        record=record,
        allocation=allocation,
        created=existing is None,
        covered_records=covered,
        late_fee_charged=late_fee,
    )


def reverse_payment(
    financing: Financing,
    records: Iterable[BillingRecord],
    record_id: int,
) -> ReversalResult:
    """
    Remove a payment and rebuild the financing from the remaining history.

    Billed quotas go back to `pendiente`; records created by the payment itself are
    dropped. Paid quotas, credit and totals come from replaying what is left, and
    any late fee the payment carried is taken off the running total.

    Raises:
        InvalidPaymentError: The record does not exist or is not a payment
    """
    financing = copy.deepcopy(financing)
    records = [copy.deepcopy(r) for r in records]

    target = next((r for r in records if r.id == record_id), None)
    if target is None or not target.is_settled or target.amount <= ZERO:
        raise InvalidPaymentError(f"Record {record_id} is not a payment of financing {financing.id}")

    result = ReversalResult(financing=financing)
    financing.total_late_fees = max(ZERO, financing.total_late_fees - target.late_fee_amount)

    remaining = [r for r in records if r is not target]
    if target.is_generated:
        _reopen(target, financing)
        result.reopened.append(target)
        remaining.append(target)
    else:
        result.removed = target

    projection = project_balances(
        remaining,
        quota_amount=financing.quota_amount,
        total_quotas=financing.total_quotas,
        last_quota_amount=financing.last_quota_amount,
    )

    # Coverage markers left by this payment point at quotas that are unpaid again
    for record in remaining:
        if record.is_settled and record.amount == ZERO and record.quota_number > projection.settled_quotas:
            _reopen(record, financing)
            result.reopened.append(record)

    financing.paid_quotas = projection.settled_quotas
    financing.partial_payment_credit = projection.credit
    financing.total_paid = projection.total_received
    financing.current_balance = max(ZERO, financing.total_amount - financing.total_paid)
    financing.next_due_date = first_unsettled_due_date(financing)
    financing.status = _financing_status(financing, remaining)

    logger.info(
        "Payment reversed",
        extra={
            "financing_id": financing.id,
            "record_id": record_id,
            "paid_quotas": financing.paid_quotas,
            "credit": str(financing.partial_payment_credit),
        },
    )
    return result


def _reopen(record: BillingRecord, financing: Financing) -> None:
    record.status = PaymentStatus.PENDIENTE
    record.amount = financing.quota_amount_for(record.quota_number)
    record.payment_date = None
    record.quotas_covered = 1
    record.quota_amount_covered = None
    record.advance_credit = ZERO
    record.late_fee_amount = ZERO
    record.days_late = 0
