"""Loan endpoints - schedule, risk and approval workflow transitions"""

import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Request

from lending_engine.api.dependencies import get_approval_service, get_currency, get_loan_repository, get_request_id
from lending_engine.api.v1.calculator import to_schedule_response
from lending_engine.api.v1.errors import to_http_error
from lending_engine.api.v1.schemas import (
    AdvanceRequest,
    BulkAdvanceRequest,
    BulkItem,
    BulkRejectRequest,
    BulkResponse,
    RejectRequest,
    RiskResponse,
    ScheduleResponse,
    TransitionResponse,
)
from lending_engine.domain.calculator import quote_for_loan
from lending_engine.domain.exceptions import DomainException, LoanNotFoundError
from lending_engine.domain.models import BulkTransitionResult, StatusChange
from lending_engine.domain.risk import classify_risk
from lending_engine.infrastructure.database.repositories import LoanRepository
from lending_engine.infrastructure.observability.metrics import record_schedule
from lending_engine.services.approval import ApprovalService
from lending_engine.utils.money import CurrencyConfig

router = APIRouter()


def to_transition_response(change: StatusChange) -> TransitionResponse:
    return TransitionResponse(
        loan_id=change.loan_id,
        from_status=change.from_status.value,
        to_status=change.to_status.value,
        fields={
            key: value.isoformat() if isinstance(value, date) else (None if value is None else str(value))
            for key, value in change.fields.items()
        },
        debit_source_id=change.debit.source_id if change.debit else None,
        debit_amount=float(change.debit.amount) if change.debit else None,
    )


def to_bulk_response(outcome: BulkTransitionResult) -> BulkResponse:
    return BulkResponse(
        succeeded=len(outcome.succeeded),
        failed=len(outcome.failed),
        results=[
            BulkItem(
                loan_id=result.loan_id,
                ok=result.ok,
                to_status=result.change.to_status.value if result.change else None,
                error=str(result.error) if result.error else None,
                error_type=type(result.error).__name__ if result.error else None,
            )
            for result in outcome.results
        ],
    )


# Bulk routes are registered before /loans/{loan_id}/... so "bulk" is never read as an id
@router.post("/loans/bulk/advance", response_model=BulkResponse)
def bulk_advance(
    request_body: BulkAdvanceRequest,
    service: ApprovalService = Depends(get_approval_service),
):
    """Advance each loan independently; per-loan results, never all-or-nothing"""
    outcome = service.bulk_advance(
        request_body.loan_ids,
        confirmed=request_body.confirmed,
        funding_source_id=request_body.funding_source_id,
    )
    return to_bulk_response(outcome)


@router.post("/loans/bulk/reject", response_model=BulkResponse)
def bulk_reject(
    request_body: BulkRejectRequest,
    service: ApprovalService = Depends(get_approval_service),
):
    outcome = service.bulk_reject(request_body.loan_ids, request_body.reason)
    return to_bulk_response(outcome)


@router.get("/loans/{loan_id}/schedule", response_model=ScheduleResponse)
def get_loan_schedule(
    loan_id: str,
    start_date: date | None = None,
    repository: LoanRepository = Depends(get_loan_repository),
    currency: CurrencyConfig = Depends(get_currency),
):
    """Schedule recomputed from the loan's stored terms"""
    loan = repository.get_loan(loan_id)
    if loan is None:
        raise to_http_error(LoanNotFoundError(loan_id))

    quote = quote_for_loan(loan, currency=currency, start_date=start_date or loan.disbursement_date)
    record_schedule(loan.interest_method.value, quote is not None)
    if quote is None:
        raise HTTPException(status_code=422, detail="Schedule not computable for this loan's terms")
    return to_schedule_response(quote, currency)


@router.get("/loans/{loan_id}/risk", response_model=RiskResponse)
def get_loan_risk(loan_id: str, repository: LoanRepository = Depends(get_loan_repository)):
    loan = repository.get_loan(loan_id)
    if loan is None:
        raise to_http_error(LoanNotFoundError(loan_id))

    assessment = classify_risk(loan, repository.get_client(loan.client_id))
    if assessment is None:
        raise HTTPException(status_code=422, detail="Risk not computable for this loan's terms")

    return RiskResponse(
        loan_id=loan.id,
        risk_level=assessment.risk_level.value,
        risk_score=assessment.risk_score,
        factors=assessment.factors,
    )


@router.post("/loans/{loan_id}/advance/preview", response_model=TransitionResponse)
def preview_advance(
    loan_id: str,
    request_body: AdvanceRequest,
    service: ApprovalService = Depends(get_approval_service),
):
    """What a confirmed advance would stamp; nothing is written. Domain errors map via the app handler."""
    change = service.propose_advance(
        loan_id,
        funding_source_id=request_body.funding_source_id,
        disbursement_date=request_body.disbursement_date,
    )
    return to_transition_response(change)


@router.post("/loans/{loan_id}/advance", response_model=TransitionResponse)
def advance_loan(
    loan_id: str,
    request_body: AdvanceRequest,
    request: Request,
    service: ApprovalService = Depends(get_approval_service),
):
    """
    Move a loan one step along the pipeline.

    Checkpoint steps (to manager approval, approval, disbursement) need
    confirmed=true; disbursement also needs funding_source_id.
    """
    try:
        change = service.advance(
            loan_id,
            confirmed=request_body.confirmed,
            funding_source_id=request_body.funding_source_id,
            disbursement_date=request_body.disbursement_date,
        )
    except DomainException as e:
        logging.warning(f"Advance rejected: {e}", extra={"request_id": get_request_id(request)})
        raise to_http_error(e)
    return to_transition_response(change)


@router.post("/loans/{loan_id}/reject", response_model=TransitionResponse)
def reject_loan(
    loan_id: str,
    request_body: RejectRequest,
    request: Request,
    service: ApprovalService = Depends(get_approval_service),
):
    try:
        change = service.reject(loan_id, request_body.reason)
    except DomainException as e:
        logging.warning(f"Reject refused: {e}", extra={"request_id": get_request_id(request)})
        raise to_http_error(e)
    return to_transition_response(change)
