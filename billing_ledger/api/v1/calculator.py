"""POST /v1/calculator/quotas - quota plan and penalty preview before signing"""

from fastapi import APIRouter, HTTPException

from billing_ledger.api.v1.schemas import (
    PenaltyPreview,
    QuotaCalculatorRequest,
    QuotaCalculatorResponse,
    QuotaPlanRowSchema,
)
from billing_ledger.domain.exceptions import InvalidScheduleError
from billing_ledger.domain.models import PenaltyMode
from billing_ledger.domain.penalties import penalty_amount
from billing_ledger.domain.schedule import build_quota_plan, compute_schedule, compute_schedule_for_months

router = APIRouter()


@router.post("/calculator/quotas", response_model=QuotaCalculatorResponse)
def calculate_quotas(request_body: QuotaCalculatorRequest):
    """
    Preview a contract: the down payment comes off the total, the rest is split
    into quotas, and penalties are shown for a few lateness scenarios in both
    the production (flat) and the per-day simulation mode.
    """
    financed_amount = request_body.total_amount - request_body.advance_payment

    try:
        if request_body.total_quotas is not None:
            schedule = compute_schedule(
                financed_amount,
                request_body.total_quotas,
                request_body.payment_frequency,
                request_body.start_date,
            )
        else:
            schedule = compute_schedule_for_months(
                financed_amount,
                request_body.financing_months,
                request_body.payment_frequency,
                request_body.start_date,
            )

        previews = [
            PenaltyPreview(
                days_late=days,
                flat_penalty=penalty_amount(schedule.quota_amount, days, request_body.late_fee_percentage),
                per_day_penalty=penalty_amount(
                    schedule.quota_amount, days, request_body.late_fee_percentage, PenaltyMode.PER_DAY
                ),
            )
            for days in request_body.preview_days_late
        ]
    except InvalidScheduleError as e:
        raise HTTPException(status_code=422, detail=str(e))

    plan = build_quota_plan(schedule)
    return QuotaCalculatorResponse(
        financed_amount=schedule.total_amount,
        total_quotas=schedule.total_quotas,
        quota_amount=schedule.quota_amount,
        last_quota_amount=schedule.last_quota_amount,
        next_due_date=schedule.next_due_date,
        end_date=plan[-1].due_date,
        plan=[QuotaPlanRowSchema.model_validate(row) for row in plan],
        penalty_previews=previews,
    )
