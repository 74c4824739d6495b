"""Data access layer for financings and billing records"""

from decimal import Decimal
from typing import Iterable, List
from sqlalchemy.orm import Session
from billing_ledger.infrastructure.database.models import FinancingRow, BillingRecordRow, ReceiptCounterRow
from billing_ledger.domain.exceptions import FinancingNotFoundError
from billing_ledger.domain.models import (
    BillingRecord,
    Financing,
    FinancingStatus,
    PaymentFrequency,
    PaymentStatus,
)


def _money(value) -> Decimal:
    return Decimal(value if value is not None else 0).quantize(Decimal("0.01"))


def financing_to_domain(row: FinancingRow) -> Financing:
    return Financing(
        id=row.id,
        financing_number=row.financing_number,
        total_amount=_money(row.total_amount),
        payment_frequency=PaymentFrequency(row.payment_frequency),
        total_quotas=row.total_quotas,
        quota_amount=_money(row.quota_amount),
        start_date=row.start_date,
        next_due_date=row.next_due_date,
        paid_quotas=row.paid_quotas,
        partial_payment_credit=_money(row.partial_payment_credit),
        late_fee_percentage=Decimal(row.late_fee_percentage),
        total_late_fees=_money(row.total_late_fees),
        total_paid=_money(row.total_paid),
        current_balance=_money(row.current_balance),
        max_late_quotas_allowed=row.max_late_quotas_allowed,
        status=FinancingStatus(row.status),
        notes=row.notes,
    )


def record_to_domain(row: BillingRecordRow) -> BillingRecord:
    return BillingRecord(
        id=row.id,
        financing_id=row.financing_id,
        sequence=row.sequence,
        receipt_number=row.receipt_number,
        quota_number=row.quota_number,
        amount=_money(row.amount),
        currency=row.currency,
        status=PaymentStatus(row.status),
        due_date=row.due_date,
        payment_date=row.payment_date,
        quotas_covered=row.quotas_covered,
        quota_amount_covered=_money(row.quota_amount_covered) if row.quota_amount_covered is not None else None,
        advance_credit=_money(row.advance_credit),
        late_fee_amount=_money(row.late_fee_amount),
        days_late=row.days_late,
        confirmation_number=row.confirmation_number,
        comments=row.comments,
        is_generated=row.is_generated,
    )


class FinancingRepository:
    """Repository for financing contracts"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, financing: Financing) -> Financing:
        """Persist a new financing and return it with its assigned id"""
        row = FinancingRow()
        self._apply(row, financing)
        self.db.add(row)
        self.db.flush()  # Get ID without committing
        if not row.financing_number:
            row.financing_number = f"FIN-{row.id:05d}"
        return financing_to_domain(row)

    def get(self, financing_id: int, for_update: bool = False) -> Financing:
        """
        Load one financing.

        for_update takes a row lock for the rest of the transaction, so payments and
        cycle runs on the same financing are serialized.

        Raises:
            FinancingNotFoundError: No financing with that id
        """
        query = self.db.query(FinancingRow).filter(FinancingRow.id == financing_id)
        if for_update:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            raise FinancingNotFoundError(f"Financing {financing_id} not found")
        return financing_to_domain(row)

    def list_ids_by_status(self, statuses: Iterable[FinancingStatus]) -> List[int]:
        values = [FinancingStatus(s).value for s in statuses]
        rows = (
            self.db.query(FinancingRow.id)
            .filter(FinancingRow.status.in_(values))
            .order_by(FinancingRow.id)
            .all()
        )
        return [row.id for row in rows]

    def save(self, financing: Financing) -> None:
        row = self.db.get(FinancingRow, financing.id)
        if row is None:
            raise FinancingNotFoundError(f"Financing {financing.id} not found")
        self._apply(row, financing)

    @staticmethod
    def _apply(row: FinancingRow, financing: Financing) -> None:
        row.financing_number = financing.financing_number
        row.total_amount = financing.total_amount
        row.payment_frequency = financing.payment_frequency.value
        row.total_quotas = financing.total_quotas
        row.quota_amount = financing.quota_amount
        row.start_date = financing.start_date
        row.next_due_date = financing.next_due_date
        row.paid_quotas = financing.paid_quotas
        row.partial_payment_credit = financing.partial_payment_credit
        row.late_fee_percentage = financing.late_fee_percentage
        row.total_late_fees = financing.total_late_fees
        row.total_paid = financing.total_paid
        row.current_balance = financing.current_balance
        row.max_late_quotas_allowed = financing.max_late_quotas_allowed
        row.status = financing.status.value
        row.notes = financing.notes


class BillingRecordRepository:
    """Repository for quotas and payments"""

    def __init__(self, db: Session):
        self.db = db

    def list_for_financing(self, financing_id: int) -> List[BillingRecord]:
        """All records of a financing in creation order"""
        rows = (
            self.db.query(BillingRecordRow)
            .filter(BillingRecordRow.financing_id == financing_id)
            .order_by(BillingRecordRow.sequence, BillingRecordRow.id)
            .all()
        )
        return [record_to_domain(row) for row in rows]

    def save(self, record: BillingRecord) -> BillingRecord:
        """Insert a new record or update an existing one; returns it with its id"""
        if record.id is None:
            row = BillingRecordRow()
            self._apply(row, record)
            self.db.add(row)
            self.db.flush()
        else:
            row = self.db.get(BillingRecordRow, record.id)
            self._apply(row, record)
        return record_to_domain(row)

    def save_all(self, records: Iterable[BillingRecord]) -> List[BillingRecord]:
        return [self.save(record) for record in records]

    def delete(self, record_id: int) -> None:
        row = self.db.get(BillingRecordRow, record_id)
        if row is not None:
            self.db.delete(row)
            self.db.flush()

    @staticmethod
    def _apply(row: BillingRecordRow, record: BillingRecord) -> None:
        row.financing_id = record.financing_id
        row.sequence = record.sequence
        row.receipt_number = record.receipt_number
        row.quota_number = record.quota_number
        row.amount = record.amount
        row.currency = record.currency
        row.status = PaymentStatus(record.status).value
        row.due_date = record.due_date
        row.payment_date = record.payment_date
        row.quotas_covered = record.quotas_covered
        row.quota_amount_covered = record.quota_amount_covered
        row.advance_credit = record.advance_credit
        row.late_fee_amount = record.late_fee_amount
        row.days_late = record.days_late
        row.confirmation_number = record.confirmation_number
        row.comments = record.comments
        row.is_generated = record.is_generated


class ReceiptCounterRepository:
    """Hands out receipt numbers that are never reused, even after a reversal"""

    def __init__(self, db: Session):
        self.db = db

    def next_value(self, prefix: str) -> int:
        # The row lock serializes numbering across financings until commit
        row = (
            self.db.query(ReceiptCounterRow)
            .filter(ReceiptCounterRow.prefix == prefix)
            .with_for_update()
            .first()
        )
        if row is None:
            row = ReceiptCounterRow(prefix=prefix, last_value=0)
            self.db.add(row)
        row.last_value += 1
        self.db.flush()
        return row.last_value
