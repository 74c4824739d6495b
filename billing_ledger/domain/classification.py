"""Status decision table for registered payments"""

from billing_ledger.domain.models import Allocation, BillingRecord, PaymentStatus

PAYMENT_STATES = frozenset({PaymentStatus.PAGADO, PaymentStatus.ABONADO, PaymentStatus.ADELANTO})
OUTSTANDING_STATES = frozenset({PaymentStatus.PENDIENTE, PaymentStatus.RETRASADO})


def classify(allocation: Allocation, days_late: int, target_generated: bool) -> PaymentStatus:
    """
    Map an allocation to the status of the payment record.

    - Late payments are `retrasado` whatever they covered
    - Payments spanning several quotas, leaving credit, or falling short are
      `abonado` when the target quota was already billed, `adelanto` when the
      weekly cycle has not generated it yet
    - Everything else settles exactly one quota: `pagado`
    """
    if days_late > 0:
        return PaymentStatus.RETRASADO

    if allocation.quotas_covered > 1 or allocation.advance_credit > 0 or allocation.is_partial:
        return PaymentStatus.ABONADO if target_generated else PaymentStatus.ADELANTO

    return PaymentStatus.PAGADO


def is_terminal(status: PaymentStatus) -> bool:
    return PaymentStatus(status) in PAYMENT_STATES


def is_outstanding(record: BillingRecord) -> bool:
    """Unsettled obligation that the overdue run may still act on"""
    return not record.is_settled and record.status in OUTSTANDING_STATES
