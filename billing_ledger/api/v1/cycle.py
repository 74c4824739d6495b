"""Weekly billing cycle: billing-day generation and deadline overdue runs"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from billing_ledger.api.dependencies import get_notification_client, get_request_id, get_today
from billing_ledger.api.v1.schemas import (
    BillingRecordSchema,
    FinancingGeneration,
    FinancingOverdue,
    GenerateRequest,
    GenerateResponse,
    OverdueRequest,
    OverdueResponse,
)
from billing_ledger.config import settings
from billing_ledger.domain.cycle import apply_friday_overdue, generate_tuesday, penalty_total, preview_overdue
from billing_ledger.domain.exceptions import BillingError, FinancingNotFoundError
from billing_ledger.domain.models import FinancingStatus, OverdueResult, PenaltyMode
from billing_ledger.infrastructure.clients.notifications import NotificationClient, notify
from billing_ledger.infrastructure.database.repositories import BillingRecordRepository, FinancingRepository
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.infrastructure.observability.logging import log_cycle_run
from billing_ledger.infrastructure.observability.metrics import quotas_generated_counter, record_overdue_run
from billing_ledger.utils.date_utils import cycle_dates

router = APIRouter()

OPEN_STATUSES = (FinancingStatus.ACTIVO, FinancingStatus.EN_MORA)


def _target_ids(repo: FinancingRepository, financing_id: Optional[int]) -> List[int]:
    if financing_id is not None:
        return [financing_id]
    return repo.list_ids_by_status(OPEN_STATUSES)


def _overdue_summary(result: OverdueResult) -> FinancingOverdue:
    return FinancingOverdue(
        financing_id=result.financing.id,
        status=result.financing.status,
        total_late_fees=result.financing.total_late_fees,
        newly_overdue=[BillingRecordSchema.model_validate(r) for r in result.newly_overdue],
        updated_records=[BillingRecordSchema.model_validate(r) for r in result.updated_records],
        total_penalty=result.total_penalty,
    )


@router.post("/cycle/generate", response_model=GenerateResponse)
def run_generation(
    request_body: GenerateRequest,
    request: Request,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """
    Billing day: create pending quotas for every open financing (or just one).

    Each financing is locked, generated and committed on its own, so one bad
    contract does not hold back the rest of the run.
    """
    request_id = get_request_id(request)
    reference_date = request_body.reference_date or today
    billing_date, deadline_date = cycle_dates(reference_date, settings.billing_day, settings.deadline_day)

    financing_repo = FinancingRepository(db)
    record_repo = BillingRecordRepository(db)
    summaries: List[FinancingGeneration] = []

    for financing_id in _target_ids(financing_repo, request_body.financing_id):
        try:
            financing = financing_repo.get(financing_id, for_update=True)
            records = record_repo.list_for_financing(financing_id)
            result = generate_tuesday(financing, records, reference_date)

            new_records = record_repo.save_all(result.new_records)
            financing_repo.save(result.financing)
            db.commit()

        except FinancingNotFoundError:
            db.rollback()
            raise HTTPException(status_code=404, detail="Financing not found")

        except Exception as e:
            db.rollback()
            logging.error(
                f"Quota generation failed: {e}",
                extra={"request_id": request_id, "financing_id": financing_id},
            )
            raise HTTPException(status_code=500, detail="Internal server error")

        quotas_generated_counter.inc(len(new_records))
        summaries.append(
            FinancingGeneration(
                financing_id=financing_id,
                status=result.financing.status,
                new_records=[BillingRecordSchema.model_validate(r) for r in new_records],
                fully_scheduled=result.fully_scheduled,
            )
        )

    generated_count = sum(len(s.new_records) for s in summaries)
    log_cycle_run(request_id, "generate", reference_date, len(summaries), generated_count)

    return GenerateResponse(
        reference_date=reference_date,
        billing_date=billing_date,
        deadline_date=deadline_date,
        generated_count=generated_count,
        financings=summaries,
    )


@router.post("/cycle/overdue", response_model=OverdueResponse)
async def run_overdue(
    request_body: OverdueRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
    today: date = Depends(get_today),
):
    """
    Deadline day: mark unpaid quotas past due as overdue and charge penalties.

    update_existing_only refreshes days late and penalties of quotas that are
    already overdue without converting new ones. Persisted runs always charge
    the flat fee; per-day amounts are only shown by the preview.
    """
    request_id = get_request_id(request)
    reference_date = request_body.reference_date or today
    mode = request_body.mode

    financing_repo = FinancingRepository(db)
    record_repo = BillingRecordRepository(db)
    results: List[OverdueResult] = []

    for financing_id in _target_ids(financing_repo, request_body.financing_id):
        try:
            financing = financing_repo.get(financing_id, for_update=True)
            records = record_repo.list_for_financing(financing_id)
            result = apply_friday_overdue(
                financing,
                records,
                reference_date,
                penalty_percentage=request_body.penalty_percentage,
                mode=mode,
                update_existing_only=request_body.update_existing_only,
            )

            record_repo.save_all(result.newly_overdue + result.updated_records)
            financing_repo.save(result.financing)
            db.commit()

        except FinancingNotFoundError:
            db.rollback()
            raise HTTPException(status_code=404, detail="Financing not found")

        except BillingError as e:
            db.rollback()
            raise HTTPException(status_code=422, detail=str(e))

        except Exception as e:
            db.rollback()
            logging.error(
                f"Overdue run failed: {e}",
                extra={"request_id": request_id, "financing_id": financing_id},
            )
            raise HTTPException(status_code=500, detail="Internal server error")

        record_overdue_run(len(result.newly_overdue), result.financing.total_late_fees - financing.total_late_fees)
        results.append(result)

        if result.newly_overdue:
            background_tasks.add_task(
                notify,
                notification_client,
                {
                    "event": "QUOTAS_OVERDUE",
                    "financing_id": financing_id,
                    "quota_numbers": [r.quota_number for r in result.newly_overdue],
                    "total_penalty": str(result.total_penalty),
                    "reference_date": reference_date.isoformat(),
                },
            )

    overdue_count = sum(len(r.newly_overdue) for r in results)
    total_penalty = penalty_total(results)
    log_cycle_run(request_id, "overdue", reference_date, len(results), overdue_count, str(total_penalty))

    return OverdueResponse(
        reference_date=reference_date,
        mode=mode,
        overdue_count=overdue_count,
        total_penalty=total_penalty,
        financings=[_overdue_summary(r) for r in results],
    )


@router.get("/cycle/overdue/preview", response_model=OverdueResponse)
def preview_overdue_run(
    reference_date: Optional[date] = Query(None),
    financing_id: Optional[int] = Query(None),
    penalty_percentage: Optional[Decimal] = Query(None, ge=0, le=100),
    mode: Optional[PenaltyMode] = Query(None),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """What the next overdue run would charge; nothing is written"""
    reference_date = reference_date or today
    mode = mode or settings.preview_penalty_mode

    financing_repo = FinancingRepository(db)
    record_repo = BillingRecordRepository(db)
    results: List[OverdueResult] = []

    try:
        for target_id in _target_ids(financing_repo, financing_id):
            financing = financing_repo.get(target_id)
            records = record_repo.list_for_financing(target_id)
            results.append(preview_overdue(financing, records, reference_date, penalty_percentage, mode))
    except FinancingNotFoundError:
        raise HTTPException(status_code=404, detail="Financing not found")

    return OverdueResponse(
        reference_date=reference_date,
        mode=mode,
        overdue_count=sum(len(r.newly_overdue) for r in results),
        total_penalty=penalty_total(results),
        financings=[_overdue_summary(r) for r in results if r.newly_overdue or r.updated_records],
    )
