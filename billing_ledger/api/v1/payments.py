"""Payment registration and reversal for a financing"""

import time
import logging
from datetime import date
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_ledger.api.dependencies import get_notification_client, get_request_id, get_today
from billing_ledger.api.v1.schemas import (
    BillingRecordSchema,
    FinancingSchema,
    PaymentRequest,
    PaymentResponse,
    ReversalResponse,
)
from billing_ledger.domain.exceptions import FinancingNotFoundError, InvalidPaymentError
from billing_ledger.domain.payments import payment_receipt_number, register_payment, reverse_payment
from billing_ledger.infrastructure.clients.notifications import NotificationClient, notify
from billing_ledger.infrastructure.database.repositories import (
    BillingRecordRepository,
    FinancingRepository,
    ReceiptCounterRepository,
)
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.infrastructure.observability.logging import log_payment
from billing_ledger.infrastructure.observability.metrics import record_payment

router = APIRouter()


@router.post("/financings/{financing_id}/payments", response_model=PaymentResponse, status_code=201)
async def create_payment(
    financing_id: int,
    request_body: PaymentRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
    reference_date: date = Depends(get_today),
):
    """
    Register a payment against a financing.

    Flow:
    1. Lock the financing row for the rest of the transaction
    2. Reserve the month's next receipt number, load the records and allocate
       the payment (domain)
    3. Persist the financing and every touched record
    4. Commit once, then notify in the background
    """
    start_time = time.time()
    request_id = get_request_id(request)
    payment_date = request_body.payment_date or reference_date

    financing_repo = FinancingRepository(db)
    record_repo = BillingRecordRepository(db)
    counter_repo = ReceiptCounterRepository(db)

    try:
        financing = financing_repo.get(financing_id, for_update=True)
        records = record_repo.list_for_financing(financing_id)

        prefix = payment_receipt_number(payment_date, 0)[:-5]
        receipt_number = payment_receipt_number(payment_date, counter_repo.next_value(prefix))

        result = register_payment(
            financing,
            records,
            request_body.amount,
            payment_date,
            receipt_number=receipt_number,
            confirmation_number=request_body.confirmation_number,
            comments=request_body.comments,
        )

        financing_repo.save(result.financing)
        record = record_repo.save(result.record)
        covered = record_repo.save_all(result.covered_records)
        db.commit()

    except FinancingNotFoundError:
        db.rollback()
        raise HTTPException(status_code=404, detail="Financing not found")

    except InvalidPaymentError as e:
        db.rollback()
        logging.warning(f"Payment rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except IntegrityError as e:
        # Two transactions opened the same month's receipt counter at once
        db.rollback()
        logging.warning(f"Receipt numbering conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail="Concurrent payment, please retry")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    duration_ms = (time.time() - start_time) * 1000
    record_payment(record.status.value, result.allocation.total_applied, result.late_fee_charged)
    log_payment(
        request_id,
        financing_id,
        record.quota_number,
        record.status.value,
        str(result.allocation.total_applied),
        duration_ms,
    )

    background_tasks.add_task(
        notify,
        notification_client,
        {
            "event": "PAYMENT_REGISTERED",
            "financing_id": financing_id,
            "record_id": record.id,
            "receipt_number": record.receipt_number,
            "quota_number": record.quota_number,
            "status": record.status.value,
            "amount": str(result.allocation.total_applied),
            "financing_status": result.financing.status.value,
        },
    )

    return PaymentResponse(
        financing=FinancingSchema.model_validate(result.financing),
        record=BillingRecordSchema.model_validate(record),
        quotas_covered=result.allocation.quotas_covered,
        amount_applied_to_quotas=result.allocation.amount_applied_to_quotas,
        advance_credit=result.allocation.advance_credit,
        total_applied=result.allocation.total_applied,
        late_fee_charged=result.late_fee_charged,
        covered_records=[BillingRecordSchema.model_validate(r) for r in covered],
    )


@router.delete("/financings/{financing_id}/payments/{record_id}", response_model=ReversalResponse)
def delete_payment(
    financing_id: int,
    record_id: int,
    request: Request,
    db: Session = Depends(get_db),
):
    """Undo a payment: billed quotas reopen, payment-only records are removed"""
    request_id = get_request_id(request)
    financing_repo = FinancingRepository(db)
    record_repo = BillingRecordRepository(db)

    try:
        financing = financing_repo.get(financing_id, for_update=True)
        records = record_repo.list_for_financing(financing_id)
        result = reverse_payment(financing, records, record_id)

        if result.removed is not None:
            record_repo.delete(result.removed.id)
        reopened = record_repo.save_all(result.reopened)
        financing_repo.save(result.financing)
        db.commit()

    except FinancingNotFoundError:
        db.rollback()
        raise HTTPException(status_code=404, detail="Financing not found")

    except InvalidPaymentError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return ReversalResponse(
        financing=FinancingSchema.model_validate(result.financing),
        removed_record_id=result.removed.id if result.removed else None,
        reopened=[BillingRecordSchema.model_validate(r) for r in reopened],
    )
