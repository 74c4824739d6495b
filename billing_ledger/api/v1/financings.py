"""Financing contracts: creation, detail and balance projection"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from billing_ledger.api.dependencies import get_request_id
from billing_ledger.api.v1.schemas import (
    BalanceResponse,
    BillingRecordSchema,
    FinancingCreateRequest,
    FinancingDetailResponse,
    FinancingSchema,
    QuotaBalanceSchema,
    StatusSummarySchema,
)
from billing_ledger.config import settings
from billing_ledger.domain.balance import project_financing, summarize_records
from billing_ledger.domain.exceptions import FinancingNotFoundError, InvalidScheduleError
from billing_ledger.domain.models import Financing, FinancingStatus
from billing_ledger.domain.schedule import compute_schedule, compute_schedule_for_months
from billing_ledger.infrastructure.database.repositories import BillingRecordRepository, FinancingRepository
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.infrastructure.observability.metrics import reconciliation_mismatch_counter

router = APIRouter()


@router.post("/financings", response_model=FinancingSchema, status_code=201)
def create_financing(
    request_body: FinancingCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Create a financing contract from its schedule.

    total_quotas wins when both it and financing_months are given.
    """
    request_id = get_request_id(request)
    try:
        if request_body.total_quotas is not None:
            schedule = compute_schedule(
                request_body.total_amount,
                request_body.total_quotas,
                request_body.payment_frequency,
                request_body.start_date,
            )
        else:
            schedule = compute_schedule_for_months(
                request_body.total_amount,
                request_body.financing_months,
                request_body.payment_frequency,
                request_body.start_date,
            )
    except InvalidScheduleError as e:
        logging.warning(f"Invalid schedule: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    financing = Financing(
        id=None,
        total_amount=schedule.total_amount,
        payment_frequency=schedule.frequency,
        total_quotas=schedule.total_quotas,
        quota_amount=schedule.quota_amount,
        start_date=schedule.start_date,
        next_due_date=schedule.next_due_date,
        late_fee_percentage=(
            request_body.late_fee_percentage
            if request_body.late_fee_percentage is not None
            else settings.default_late_fee_percentage
        ),
        current_balance=schedule.total_amount,
        status=FinancingStatus.ACTIVO,
        max_late_quotas_allowed=request_body.max_late_quotas_allowed,
        notes=request_body.notes,
    )

    created = FinancingRepository(db).create(financing)
    db.commit()

    logging.info(
        "Financing created",
        extra={
            "request_id": request_id,
            "financing_id": created.id,
            "total_quotas": created.total_quotas,
            "quota_amount": str(created.quota_amount),
        },
    )
    return FinancingSchema.model_validate(created)


@router.get("/financings/{financing_id}", response_model=FinancingDetailResponse)
def get_financing(financing_id: int, db: Session = Depends(get_db)):
    """Financing state with every quota and payment record in creation order"""
    try:
        financing = FinancingRepository(db).get(financing_id)
    except FinancingNotFoundError:
        raise HTTPException(status_code=404, detail="Financing not found")

    records = BillingRecordRepository(db).list_for_financing(financing_id)
    return FinancingDetailResponse(
        financing=FinancingSchema.model_validate(financing),
        records=[BillingRecordSchema.model_validate(r) for r in records],
    )


@router.get("/financings/{financing_id}/balance", response_model=BalanceResponse)
def get_financing_balance(financing_id: int, request: Request, db: Session = Depends(get_db)):
    """
    Per-quota balances replayed from the payment history.

    The replayed credit is authoritative; when it disagrees with the stored
    field the response carries a reconciliation warning instead of failing.
    """
    try:
        financing = FinancingRepository(db).get(financing_id)
    except FinancingNotFoundError:
        raise HTTPException(status_code=404, detail="Financing not found")

    records = BillingRecordRepository(db).list_for_financing(financing_id)
    projection = project_financing(financing, records)
    summary = summarize_records(records)

    warning = None
    if projection.mismatch is not None:
        reconciliation_mismatch_counter.inc()
        warning = str(projection.mismatch)
        logging.warning(warning, extra={"request_id": get_request_id(request)})

    return BalanceResponse(
        financing_id=financing_id,
        settled_quotas=projection.settled_quotas,
        credit=projection.credit,
        stored_credit=projection.stored_credit,
        reconciliation_warning=warning,
        total_received=projection.total_received,
        quotas=[QuotaBalanceSchema.model_validate(q) for q in projection.quotas.values()],
        summary={
            status: StatusSummarySchema(count=s.count, amount=s.amount)
            for status, s in summary.by_status.items()
        },
        overdue_amount=summary.overdue_amount,
        total_collected=summary.total_collected,
    )
