"""Balance reconstruction from a financing's payment history"""

import logging
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from billing_ledger.domain.exceptions import ReconciliationMismatchError
from billing_ledger.domain.models import (
    BalanceProjection,
    BillingRecord,
    Financing,
    LedgerSummary,
    PaymentStatus,
    QuotaBalance,
    StatusSummary,
)
from billing_ledger.domain.money import ZERO, money_close, to_money

logger = logging.getLogger(__name__)


class QuotaCursor:
    """
    Pours received money into quotas in order, carrying the remainder forward.

    The cursor always points at the first quota that is not fully paid; money
    sitting on that quota is the financing's unconsumed credit. Payment
    registration and the read-side projector both drive this class, so the
    stored credit and the replayed credit come from the same arithmetic.
    """

    def __init__(self, amount_for: Callable[[int], Decimal], total_quotas: Optional[int] = None):
        self.amount_for = amount_for
        self.total_quotas = total_quotas
        self.position = 1
        self.quotas: Dict[int, QuotaBalance] = {}
        self.overflow = ZERO  # Money received after every quota was settled

    def balance(self, quota_number: int) -> QuotaBalance:
        if quota_number not in self.quotas:
            self.quotas[quota_number] = QuotaBalance(
                quota_number=quota_number,
                quota_amount=self.amount_for(quota_number),
            )
        return self.quotas[quota_number]

    @property
    def settled_quotas(self) -> int:
        return self.position - 1

    @property
    def exhausted(self) -> bool:
        return self.total_quotas is not None and self.position > self.total_quotas

    @property
    def credit(self) -> Decimal:
        if self.exhausted:
            return self.overflow
        current = self.quotas.get(self.position)
        return (current.paid if current else ZERO) + self.overflow

    def pour(self, amount: Decimal, owner_quota: int) -> int:
        """
        Apply `amount` from the first unpaid quota onward.

        Money landing on `owner_quota` counts as paid directly; money landing on
        any other quota is credit carried from that payment. Returns the number
        of quotas this call completed.
        """
        money = to_money(amount)
        completed = 0
        while money > ZERO:
            if self.exhausted:
                self.overflow += money
                break

            balance = self.balance(self.position)
            take = min(money, balance.quota_amount - balance.paid)
            if balance.quota_number == owner_quota:
                balance.paid_directly += take
            else:
                balance.credit_applied += take
            money -= take

            if balance.paid >= balance.quota_amount:
                self.position += 1
                completed += 1
        return completed


def replay_order(records: Iterable[BillingRecord]) -> List[BillingRecord]:
    """Settled records in creation order, not display order"""
    return sorted((r for r in records if r.is_settled), key=lambda r: (r.sequence, r.id or 0))


def project_balances(
    records: Iterable[BillingRecord],
    quota_amount: Decimal,
    total_quotas: Optional[int] = None,
    last_quota_amount: Optional[Decimal] = None,
    stored_credit: Optional[Decimal] = None,
    financing_id: Optional[int] = None,
) -> BalanceProjection:
    """
    Reconstruct per-quota paid totals and the unconsumed credit.

    Requirements:
    - Replay settled records in creation order, applying the allocator's rule to each
    - Report every quota that was paid into or has a billing record
    - The recomputed credit always wins; a disagreement with stored_credit larger
      than rounding noise is logged and attached as `mismatch`, never raised
    """
    records = list(records)
    quota = to_money(quota_amount)
    last = to_money(last_quota_amount) if last_quota_amount is not None else quota

    def amount_for(quota_number: int) -> Decimal:
        return last if total_quotas is not None and quota_number == total_quotas else quota

    cursor = QuotaCursor(amount_for, total_quotas)
    total_received = ZERO

    for record in replay_order(records):
        amount = to_money(record.amount)
        if amount <= ZERO:
            # Correction lines and zero-amount coverage markers move no money
            continue
        total_received += amount
        cursor.pour(amount, record.quota_number)

    for record in records:
        if total_quotas is None or record.quota_number <= total_quotas:
            cursor.balance(record.quota_number)

    projection = BalanceProjection(
        quotas=dict(sorted(cursor.quotas.items())),
        settled_quotas=cursor.settled_quotas,
        credit=cursor.credit,
        total_received=total_received,
        stored_credit=stored_credit,
    )

    if stored_credit is not None and not money_close(to_money(stored_credit), projection.credit):
        projection.mismatch = ReconciliationMismatchError(financing_id, to_money(stored_credit), projection.credit)
        logger.warning(
            "Credit reconciliation mismatch",
            extra={
                "financing_id": financing_id,
                "stored_credit": str(stored_credit),
                "recomputed_credit": str(projection.credit),
            },
        )

    return projection


def project_financing(financing: Financing, records: Iterable[BillingRecord]) -> BalanceProjection:
    """Project a financing's history, checking it against the stored credit"""
    return project_balances(
        records,
        quota_amount=financing.quota_amount,
        total_quotas=financing.total_quotas,
        last_quota_amount=financing.last_quota_amount,
        stored_credit=financing.partial_payment_credit,
        financing_id=financing.id,
    )


def summarize_records(records: Iterable[BillingRecord]) -> LedgerSummary:
    """Counts and amounts per status, as shown above the payment timeline"""
    records = list(records)
    by_status = {status: StatusSummary() for status in PaymentStatus}
    overdue_amount = ZERO
    total_collected = ZERO

    for record in records:
        summary = by_status[record.status]
        summary.count += 1
        summary.amount += record.amount

        if record.is_settled:
            total_collected += record.amount
        elif record.status == PaymentStatus.RETRASADO:
            overdue_amount += record.amount + record.late_fee_amount

    return LedgerSummary(
        total=len(records),
        by_status=by_status,
        overdue_amount=overdue_amount,
        total_collected=total_collected,
    )
