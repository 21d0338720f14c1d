"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from typing import Dict, List, Optional

from lending_engine.domain.models import InterestMethod, RepaymentFrequency


class ScheduleRequest(BaseModel):
    """Request body for POST /v1/calculator/schedule"""

    principal: float = Field(..., description="Loan amount")
    annual_rate_percent: float = Field(..., description="Annual interest rate in percent")
    tenor_periods: int = Field(..., description="Number of repayment periods")
    method: InterestMethod = InterestMethod.FLAT
    start_date: Optional[date] = None
    frequency: RepaymentFrequency = RepaymentFrequency.MONTHLY


class ScheduleEntrySchema(BaseModel):
    """Single row of a repayment schedule"""

    period: int
    payment: float
    principal: float
    interest: float
    balance: float
    due_date: Optional[date] = None


class ScheduleResponse(BaseModel):
    per_period_payment: float
    total_interest: float
    total_repayment: float
    formatted_payment: str
    schedule: List[ScheduleEntrySchema]


class RiskResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/risk"""

    loan_id: str
    risk_level: str
    risk_score: int
    factors: Dict[str, int]


class PhaseBucketSchema(BaseModel):
    phase: int
    label: str
    loan_ids: List[str]
    count: int


class PhasesResponse(BaseModel):
    """Response for GET /v1/phases"""

    phases: List[PhaseBucketSchema]
    risk_summary: Dict[str, int]


class QueueItem(BaseModel):
    loan_id: str
    loan_number: str
    client_name: str
    principal_amount: float
    status: str
    credit_score: Optional[int] = None
    risk_level: Optional[str] = None
    risk_score: Optional[int] = None


class QueueResponse(BaseModel):
    """Response for GET /v1/phases/{phase}"""

    phase: int
    label: str
    count: int
    loans: List[QueueItem]


class AdvanceRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/advance"""

    confirmed: bool = False
    funding_source_id: Optional[str] = None
    disbursement_date: Optional[date] = None


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Why the application was rejected")


class BulkAdvanceRequest(BaseModel):
    loan_ids: List[str] = Field(..., min_length=1)
    confirmed: bool = False
    funding_source_id: Optional[str] = None


class BulkRejectRequest(BaseModel):
    loan_ids: List[str] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)


class TransitionResponse(BaseModel):
    loan_id: str
    from_status: str
    to_status: str
    fields: Dict[str, Optional[str]]
    debit_source_id: Optional[str] = None
    debit_amount: Optional[float] = None


class BulkItem(BaseModel):
    loan_id: str
    ok: bool
    to_status: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class BulkResponse(BaseModel):
    succeeded: int
    failed: int
    results: List[BulkItem]
