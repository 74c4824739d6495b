"""Unit tests for payment registration and reversal"""

import pytest
from datetime import date
from decimal import Decimal
from typing import List
from billing_ledger.domain.balance import project_financing
from billing_ledger.domain.cycle import apply_friday_overdue
from billing_ledger.domain.exceptions import InvalidPaymentError
from billing_ledger.domain.models import BillingRecord, FinancingStatus, PaymentResult, PaymentStatus
from billing_ledger.domain.payments import payment_receipt_number, register_payment, reverse_payment


def merge(records: List[BillingRecord], result: PaymentResult) -> List[BillingRecord]:
    """Records as persisted after a payment (one record per quota number)"""
    by_quota = {r.quota_number: r for r in records}
    for record in [result.record] + result.covered_records:
        by_quota[record.quota_number] = record
    return sorted(by_quota.values(), key=lambda r: r.sequence)


def test_on_time_exact_payment(weekly_financing, pending_quota):
    """Scenario A"""
    result = register_payment(weekly_financing, [pending_quota(weekly_financing, 1)], Decimal("20.00"), date(2024, 1, 2))

    assert result.record.status == PaymentStatus.PAGADO
    assert result.record.advance_credit == Decimal("0.00")
    assert result.record.payment_date == date(2024, 1, 2)
    assert not result.created
    assert result.financing.paid_quotas == 1
    assert result.financing.partial_payment_credit == Decimal("0.00")
    assert result.financing.total_paid == Decimal("20.00")
    assert result.financing.current_balance == Decimal("4380.00")
    assert result.financing.next_due_date == date(2024, 1, 9)
    assert result.financing.status == FinancingStatus.ACTIVO


def test_advance_payment_on_ungenerated_quota(weekly_financing):
    """Scenario B, quota not billed yet"""
    result = register_payment(weekly_financing, [], Decimal("45.00"), date(2023, 12, 28))

    assert result.created
    assert result.allocation.quotas_covered == 2
    assert result.allocation.amount_applied_to_quotas == Decimal("40.00")
    assert result.allocation.advance_credit == Decimal("5.00")
    assert result.record.status == PaymentStatus.ADELANTO
    assert result.record.quota_number == 1
    assert result.financing.paid_quotas == 2
    assert result.financing.partial_payment_credit == Decimal("5.00")


def test_advance_payment_on_generated_quota_covers_billed_ones(weekly_financing, pending_quota):
    """Scenario B, quotas already billed"""
    records = [pending_quota(weekly_financing, 1), pending_quota(weekly_financing, 2)]

    result = register_payment(weekly_financing, records, Decimal("45.00"), date(2024, 1, 2))

    assert result.record.status == PaymentStatus.ABONADO
    assert [r.quota_number for r in result.covered_records] == [2]
    covered = result.covered_records[0]
    assert covered.status == PaymentStatus.ABONADO
    assert covered.amount == Decimal("0.00")
    assert covered.payment_date == date(2024, 1, 2)
    assert records[1].status == PaymentStatus.PENDIENTE  # Inputs untouched


def test_late_payment_charges_flat_penalty(weekly_financing, pending_quota):
    """Scenario C"""
    result = register_payment(weekly_financing, [pending_quota(weekly_financing, 1)], Decimal("20.00"), date(2024, 1, 10))

    assert result.record.status == PaymentStatus.RETRASADO
    assert result.record.days_late == 8
    assert result.record.late_fee_amount == Decimal("2.00")
    assert result.late_fee_charged == Decimal("2.00")
    assert result.financing.total_late_fees == Decimal("2.00")
    assert result.financing.paid_quotas == 1


def test_paying_an_overdue_quota_carries_its_penalty(weekly_financing, pending_quota):
    overdue = apply_friday_overdue(weekly_financing, [pending_quota(weekly_financing, 1)], date(2024, 1, 5))
    assert overdue.financing.status == FinancingStatus.EN_MORA

    result = register_payment(overdue.financing, overdue.newly_overdue, Decimal("20.00"), date(2024, 1, 10))

    assert result.late_fee_charged == Decimal("0.00")
    assert result.record.late_fee_amount == Decimal("2.00")
    assert result.financing.total_late_fees == Decimal("2.00")
    assert result.financing.status == FinancingStatus.ACTIVO


def test_short_payment_leaves_balance_due(weekly_financing, pending_quota):
    """Scenario E"""
    records = [pending_quota(weekly_financing, 1)]
    result = register_payment(weekly_financing, records, Decimal("10.00"), date(2024, 1, 2))

    assert result.allocation.quotas_covered == 1
    assert result.allocation.amount_applied_to_quotas == Decimal("10.00")
    assert result.allocation.advance_credit == Decimal("0.00")
    assert result.record.status == PaymentStatus.ABONADO
    assert result.financing.paid_quotas == 0
    assert result.financing.partial_payment_credit == Decimal("10.00")

    projection = project_financing(result.financing, merge(records, result))
    assert projection.balance_due(1) == Decimal("10.00")
    assert projection.mismatch is None


def test_second_payment_tops_up_partial_quota(weekly_financing, pending_quota):
    records = [pending_quota(weekly_financing, 1)]
    first = register_payment(weekly_financing, records, Decimal("10.00"), date(2024, 1, 2))
    records = merge(records, first)

    second = register_payment(first.financing, records, Decimal("10.00"), date(2024, 1, 2))

    assert not second.created
    assert second.record.id == first.record.id
    assert second.record.amount == Decimal("20.00")
    assert second.record.status == PaymentStatus.PAGADO
    assert second.financing.paid_quotas == 1
    assert second.financing.partial_payment_credit == Decimal("0.00")
    assert project_financing(second.financing, merge(records, second)).mismatch is None


def test_money_is_conserved_across_payments(weekly_financing):
    financing = weekly_financing
    records: List[BillingRecord] = []
    received = Decimal("0.00")

    for amount in ["45.00", "10.00", "30.00", "20.00"]:
        result = register_payment(financing, records, Decimal(amount), date(2023, 12, 28))
        result.record.id = result.record.id or 100 + result.record.sequence
        financing, records = result.financing, merge(records, result)
        received += Decimal(amount)

        assert financing.total_paid == received
        assert financing.paid_quotas * financing.quota_amount + financing.partial_payment_credit == received
        assert project_financing(financing, records).mismatch is None

    assert financing.paid_quotas == 5
    assert financing.partial_payment_credit == Decimal("5.00")


def test_overpayment_beyond_total_completes_financing(weekly_financing):
    weekly_financing.total_quotas = 2
    weekly_financing.total_amount = Decimal("40.00")
    weekly_financing.current_balance = Decimal("40.00")

    result = register_payment(weekly_financing, [], Decimal("50.00"), date(2023, 12, 28))

    assert result.financing.paid_quotas == 2
    assert result.financing.partial_payment_credit == Decimal("10.00")
    assert result.financing.current_balance == Decimal("0.00")
    assert result.financing.status == FinancingStatus.COMPLETADO

    with pytest.raises(InvalidPaymentError):
        register_payment(result.financing, [result.record], Decimal("5.00"), date(2023, 12, 29))


def test_large_overpayment_never_covers_past_last_quota(weekly_financing):
    weekly_financing.total_quotas = 2
    weekly_financing.total_amount = Decimal("40.00")
    weekly_financing.current_balance = Decimal("40.00")

    result = register_payment(weekly_financing, [], Decimal("100.00"), date(2023, 12, 28))

    assert result.record.quotas_covered == 2
    assert result.record.quota_amount_covered == Decimal("40.00")
    assert result.record.advance_credit == Decimal("60.00")
    assert result.financing.paid_quotas == 2
    assert result.financing.partial_payment_credit == Decimal("60.00")
    assert result.financing.status == FinancingStatus.COMPLETADO


def test_record_credit_agrees_with_financing_on_uneven_last_quota(weekly_financing):
    """100.00 over 3 quotas is 33.33, 33.33, 33.34"""
    weekly_financing.total_quotas = 3
    weekly_financing.total_amount = Decimal("100.00")
    weekly_financing.quota_amount = Decimal("33.33")
    weekly_financing.current_balance = Decimal("100.00")

    first = register_payment(weekly_financing, [], Decimal("33.33"), date(2023, 12, 28))
    first.record.id = 1
    second = register_payment(first.financing, [first.record], Decimal("66.67"), date(2023, 12, 29))

    assert second.record.quotas_covered == 2
    assert second.record.quota_amount_covered == Decimal("66.67")
    assert second.record.advance_credit == Decimal("0.00")
    assert second.financing.paid_quotas == 3
    assert second.financing.partial_payment_credit == Decimal("0.00")
    assert second.financing.status == FinancingStatus.COMPLETADO


def test_rejects_non_positive_amount_without_side_effects(weekly_financing, pending_quota):
    records = [pending_quota(weekly_financing, 1)]

    with pytest.raises(InvalidPaymentError):
        register_payment(weekly_financing, records, Decimal("0"), date(2024, 1, 2))

    assert records[0].status == PaymentStatus.PENDIENTE
    assert weekly_financing.paid_quotas == 0


def test_rejects_inactive_financing(weekly_financing):
    weekly_financing.status = FinancingStatus.INACTIVO

    with pytest.raises(InvalidPaymentError):
        register_payment(weekly_financing, [], Decimal("20.00"), date(2024, 1, 2))


def test_stored_credit_tampering_is_detected(weekly_financing):
    result = register_payment(weekly_financing, [], Decimal("45.00"), date(2023, 12, 28))
    result.financing.partial_payment_credit = Decimal("7.00")

    projection = project_financing(result.financing, [result.record])

    assert projection.credit == Decimal("5.00")
    assert projection.mismatch is not None
    assert projection.mismatch.recomputed == Decimal("5.00")


def test_reverse_reopens_billed_quota(weekly_financing, pending_quota):
    records = [pending_quota(weekly_financing, 1)]
    paid = register_payment(weekly_financing, records, Decimal("20.00"), date(2024, 1, 2))

    result = reverse_payment(paid.financing, merge(records, paid), paid.record.id)

    assert result.removed is None
    assert [r.quota_number for r in result.reopened] == [1]
    assert result.reopened[0].status == PaymentStatus.PENDIENTE
    assert result.reopened[0].payment_date is None
    assert result.financing.paid_quotas == 0
    assert result.financing.total_paid == Decimal("0.00")
    assert result.financing.current_balance == Decimal("4400.00")


def test_reverse_removes_payment_created_record(weekly_financing):
    paid = register_payment(weekly_financing, [], Decimal("45.00"), date(2023, 12, 28))
    paid.record.id = 100

    result = reverse_payment(paid.financing, [paid.record], 100)

    assert result.removed.id == 100
    assert result.reopened == []
    assert result.financing.paid_quotas == 0
    assert result.financing.partial_payment_credit == Decimal("0.00")


def test_reverse_reopens_quotas_the_payment_covered(weekly_financing, pending_quota):
    records = [pending_quota(weekly_financing, 1), pending_quota(weekly_financing, 2)]
    paid = register_payment(weekly_financing, records, Decimal("45.00"), date(2024, 1, 2))

    result = reverse_payment(paid.financing, merge(records, paid), paid.record.id)

    assert sorted(r.quota_number for r in result.reopened) == [1, 2]
    assert all(r.amount == Decimal("20.00") for r in result.reopened)
    assert result.financing.partial_payment_credit == Decimal("0.00")


def test_reverse_takes_back_late_fee(weekly_financing, pending_quota):
    records = [pending_quota(weekly_financing, 1)]
    paid = register_payment(weekly_financing, records, Decimal("20.00"), date(2024, 1, 10))

    result = reverse_payment(paid.financing, merge(records, paid), paid.record.id)

    assert result.financing.total_late_fees == Decimal("0.00")


def test_reverse_rejects_unpaid_or_unknown_record(weekly_financing, pending_quota):
    records = [pending_quota(weekly_financing, 1)]

    with pytest.raises(InvalidPaymentError):
        reverse_payment(weekly_financing, records, 1)
    with pytest.raises(InvalidPaymentError):
        reverse_payment(weekly_financing, records, 999)


def test_payment_receipt_number():
    assert payment_receipt_number(date(2024, 1, 10), 7) == "REC-202401-00007"
