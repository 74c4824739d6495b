"""Pydantic schemas for API request/response validation"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from billing_ledger.domain.models import FinancingStatus, PaymentFrequency, PaymentStatus, PenaltyMode


class FinancingCreateRequest(BaseModel):
    """Request body for POST /v1/financings"""

    total_amount: Decimal = Field(..., gt=0, description="Total financed amount")
    payment_frequency: PaymentFrequency
    start_date: date
    total_quotas: Optional[int] = Field(None, gt=0, description="Number of quotas; wins over financing_months")
    financing_months: Optional[int] = Field(None, gt=0, description="Contract length in months")
    late_fee_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    max_late_quotas_allowed: int = Field(3, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_length(self) -> "FinancingCreateRequest":
        if self.total_quotas is None and self.financing_months is None:
            raise ValueError("Either total_quotas or financing_months is required")
        return self


class FinancingSchema(BaseModel):
    """Financing contract state"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    financing_number: Optional[str] = None
    total_amount: Decimal
    payment_frequency: PaymentFrequency
    total_quotas: int
    quota_amount: Decimal
    last_quota_amount: Decimal
    start_date: date
    next_due_date: date
    paid_quotas: int
    partial_payment_credit: Decimal
    late_fee_percentage: Decimal
    total_late_fees: Decimal
    total_paid: Decimal
    current_balance: Decimal
    max_late_quotas_allowed: int
    status: FinancingStatus
    notes: Optional[str] = None


class BillingRecordSchema(BaseModel):
    """Quota or payment record"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    receipt_number: Optional[str] = None
    quota_number: int
    amount: Decimal
    currency: str
    status: PaymentStatus
    due_date: date
    payment_date: Optional[date] = None
    quotas_covered: int
    quota_amount_covered: Optional[Decimal] = None
    advance_credit: Decimal
    late_fee_amount: Decimal
    days_late: int
    confirmation_number: Optional[str] = None
    comments: Optional[str] = None


class QuotaBalanceSchema(BaseModel):
    """Reconstructed state of a single quota"""

    model_config = ConfigDict(from_attributes=True)

    quota_number: int
    quota_amount: Decimal
    paid_directly: Decimal
    credit_applied: Decimal
    balance_due: Decimal


class StatusSummarySchema(BaseModel):
    count: int
    amount: Decimal


class BalanceResponse(BaseModel):
    """Response for GET /v1/financings/{id}/balance"""

    financing_id: int
    settled_quotas: int
    credit: Decimal
    stored_credit: Optional[Decimal] = None
    reconciliation_warning: Optional[str] = None
    total_received: Decimal
    quotas: List[QuotaBalanceSchema]
    summary: Dict[PaymentStatus, StatusSummarySchema]
    overdue_amount: Decimal
    total_collected: Decimal


class FinancingDetailResponse(BaseModel):
    """Response for GET /v1/financings/{id}"""

    financing: FinancingSchema
    records: List[BillingRecordSchema]


class PaymentRequest(BaseModel):
    """Request body for POST /v1/financings/{id}/payments"""

    amount: Decimal = Field(..., gt=0, description="Money received")
    payment_date: Optional[date] = Field(None, description="Defaults to today")
    confirmation_number: Optional[str] = None
    comments: Optional[str] = None


class PaymentResponse(BaseModel):
    """Response for POST /v1/financings/{id}/payments"""

    financing: FinancingSchema
    record: BillingRecordSchema
    quotas_covered: int
    amount_applied_to_quotas: Decimal
    advance_credit: Decimal
    total_applied: Decimal
    late_fee_charged: Decimal
    covered_records: List[BillingRecordSchema] = []


class ReversalResponse(BaseModel):
    """Response for DELETE /v1/financings/{id}/payments/{record_id}"""

    financing: FinancingSchema
    removed_record_id: Optional[int] = None
    reopened: List[BillingRecordSchema] = []


class GenerateRequest(BaseModel):
    """Request body for POST /v1/cycle/generate"""

    reference_date: Optional[date] = None
    financing_id: Optional[int] = None


class FinancingGeneration(BaseModel):
    financing_id: int
    status: FinancingStatus
    new_records: List[BillingRecordSchema]
    fully_scheduled: bool


class GenerateResponse(BaseModel):
    reference_date: date
    billing_date: date
    deadline_date: date
    generated_count: int
    financings: List[FinancingGeneration]


class OverdueRequest(BaseModel):
    """Request body for POST /v1/cycle/overdue"""

    reference_date: Optional[date] = None
    financing_id: Optional[int] = None
    penalty_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    mode: PenaltyMode = PenaltyMode.FLAT
    update_existing_only: bool = False

    @field_validator("mode")
    @classmethod
    def check_mode(cls, v: PenaltyMode) -> PenaltyMode:
        if v != PenaltyMode.FLAT:
            raise ValueError("Per-day penalties are only available on the overdue preview")
        return v


class FinancingOverdue(BaseModel):
    financing_id: int
    status: FinancingStatus
    total_late_fees: Decimal
    newly_overdue: List[BillingRecordSchema]
    updated_records: List[BillingRecordSchema]
    total_penalty: Decimal


class OverdueResponse(BaseModel):
    reference_date: date
    mode: PenaltyMode
    overdue_count: int
    total_penalty: Decimal
    financings: List[FinancingOverdue]


class QuotaCalculatorRequest(BaseModel):
    """Request body for POST /v1/calculator/quotas"""

    total_amount: Decimal = Field(..., gt=0)
    payment_frequency: PaymentFrequency = PaymentFrequency.WEEKLY
    start_date: date
    total_quotas: Optional[int] = Field(None, gt=0)
    financing_months: Optional[int] = Field(None, gt=0)
    advance_payment: Decimal = Field(Decimal("0"), ge=0, description="Down payment subtracted from the total")
    late_fee_percentage: Decimal = Field(Decimal("10"), ge=0, le=100)
    preview_days_late: List[int] = Field(default_factory=lambda: [1, 3, 7])

    @model_validator(mode="after")
    def check_length(self) -> "QuotaCalculatorRequest":
        if self.total_quotas is None and self.financing_months is None:
            raise ValueError("Either total_quotas or financing_months is required")
        return self


class QuotaPlanRowSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    quota_number: int
    due_date: date
    amount: Decimal


class PenaltyPreview(BaseModel):
    days_late: int
    flat_penalty: Decimal
    per_day_penalty: Decimal


class QuotaCalculatorResponse(BaseModel):
    financed_amount: Decimal
    total_quotas: int
    quota_amount: Decimal
    last_quota_amount: Decimal
    next_due_date: date
    end_date: date
    plan: List[QuotaPlanRowSchema]
    penalty_previews: List[PenaltyPreview]
