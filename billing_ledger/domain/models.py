"""Domain models - pure Python dataclasses representing billing entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from billing_ledger.domain.exceptions import ReconciliationMismatchError


class PaymentFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class FinancingStatus(str, Enum):
    ACTIVO = "activo"
    EN_MORA = "en_mora"
    COMPLETADO = "completado"
    INACTIVO = "inactivo"


class PaymentStatus(str, Enum):
    PENDIENTE = "pendiente"
    PAGADO = "pagado"
    ABONADO = "abonado"
    ADELANTO = "adelanto"
    RETRASADO = "retrasado"


class PenaltyMode(str, Enum):
    FLAT = "flat"  # Production rule: percentage charged once
    PER_DAY = "per_day"  # Simulation previews only


@dataclass
class Schedule:
    """Output of the schedule calculator for one financing contract"""

    total_amount: Decimal
    total_quotas: int
    quota_amount: Decimal
    last_quota_amount: Decimal  # Absorbs the rounding remainder
    frequency: PaymentFrequency
    start_date: date
    next_due_date: date


@dataclass
class QuotaPlanRow:
    """Single row of a projected quota plan"""

    quota_number: int
    due_date: date
    amount: Decimal


@dataclass
class Financing:
    """Installment contract"""

    id: Optional[int]
    total_amount: Decimal
    payment_frequency: PaymentFrequency
    total_quotas: int
    quota_amount: Decimal
    start_date: date
    next_due_date: date
    paid_quotas: int = 0
    partial_payment_credit: Decimal = Decimal("0.00")
    late_fee_percentage: Decimal = Decimal("10")
    total_late_fees: Decimal = Decimal("0.00")
    total_paid: Decimal = Decimal("0.00")
    current_balance: Decimal = Decimal("0.00")
    status: FinancingStatus = FinancingStatus.ACTIVO
    financing_number: Optional[str] = None
    max_late_quotas_allowed: int = 3
    notes: Optional[str] = None

    @property
    def last_quota_amount(self) -> Decimal:
        return self.total_amount - self.quota_amount * (self.total_quotas - 1)

    def quota_amount_for(self, quota_number: int) -> Decimal:
        """Amount owed for a given quota number (the last one absorbs rounding)"""
        if quota_number == self.total_quotas:
            return self.last_quota_amount
        return self.quota_amount


@dataclass
class BillingRecord:
    """Scheduled or realized obligation against one quota"""

    financing_id: Optional[int]
    quota_number: int
    amount: Decimal
    due_date: date
    status: PaymentStatus = PaymentStatus.PENDIENTE
    sequence: int = 0  # Creation order within the financing
    id: Optional[int] = None
    payment_date: Optional[date] = None
    quotas_covered: int = 1
    quota_amount_covered: Optional[Decimal] = None
    advance_credit: Decimal = Decimal("0.00")
    late_fee_amount: Decimal = Decimal("0.00")
    days_late: int = 0
    receipt_number: Optional[str] = None
    currency: str = "USD"
    confirmation_number: Optional[str] = None
    comments: Optional[str] = None
    is_generated: bool = False  # Created by the billing cycle rather than by a payment

    @property
    def is_settled(self) -> bool:
        return self.payment_date is not None

    @property
    def last_quota_touched(self) -> int:
        if self.is_settled:
            return self.quota_number + max(1, self.quotas_covered) - 1
        return self.quota_number


@dataclass
class Allocation:
    """Result of applying one incoming payment against the quota schedule"""

    quotas_covered: int
    amount_applied_to_quotas: Decimal
    advance_credit: Decimal
    total_applied: Decimal
    quota_amount: Decimal

    @property
    def is_partial(self) -> bool:
        # Only a single quota can be short: any pool covering one quota settles it
        return self.quotas_covered == 1 and self.amount_applied_to_quotas < self.quota_amount

    @property
    def full_quotas(self) -> int:
        return 0 if self.is_partial else self.quotas_covered


@dataclass
class QuotaBalance:
    """Reconstructed payment state of a single quota number"""

    quota_number: int
    quota_amount: Decimal
    paid_directly: Decimal = Decimal("0.00")
    credit_applied: Decimal = Decimal("0.00")

    @property
    def paid(self) -> Decimal:
        return self.paid_directly + self.credit_applied

    @property
    def balance_due(self) -> Decimal:
        return max(Decimal("0.00"), self.quota_amount - self.paid)


@dataclass
class BalanceProjection:
    """Read-side reconciliation of a financing's payment history"""

    quotas: Dict[int, QuotaBalance]
    settled_quotas: int
    credit: Decimal
    total_received: Decimal
    stored_credit: Optional[Decimal] = None
    mismatch: Optional[ReconciliationMismatchError] = None

    def balance_for(self, quota_number: int) -> Optional[QuotaBalance]:
        return self.quotas.get(quota_number)

    def balance_due(self, quota_number: int) -> Decimal:
        balance = self.quotas.get(quota_number)
        return balance.balance_due if balance else Decimal("0.00")


@dataclass
class StatusSummary:
    """Count and amount of records in one status"""

    count: int = 0
    amount: Decimal = Decimal("0.00")


@dataclass
class LedgerSummary:
    """Aggregated totals over a list of billing records"""

    total: int
    by_status: Dict[PaymentStatus, StatusSummary]
    overdue_amount: Decimal  # Includes accrued late fees
    total_collected: Decimal


@dataclass
class GenerationResult:
    """Outcome of a billing-day (Tuesday) run for one financing"""

    financing: Financing
    new_records: List[BillingRecord] = field(default_factory=list)
    fully_scheduled: bool = False


@dataclass
class OverdueResult:
    """Outcome of a deadline-day (Friday) run for one financing"""

    financing: Financing
    newly_overdue: List[BillingRecord] = field(default_factory=list)
    updated_records: List[BillingRecord] = field(default_factory=list)
    total_penalty: Decimal = Decimal("0.00")


@dataclass
class PaymentResult:
    """Outcome of registering one payment"""

    financing: Financing
    record: BillingRecord
    allocation: Allocation
    created: bool  # False when an existing record was settled in place
    covered_records: List[BillingRecord] = field(default_factory=list)
    late_fee_charged: Decimal = Decimal("0.00")


@dataclass
class ReversalResult:
    """Outcome of removing a payment from a financing's history"""

    financing: Financing
    removed: Optional[BillingRecord] = None  # Payment-created record to delete
    reopened: List[BillingRecord] = field(default_factory=list)  # Back to pendiente
