"""GET /v1/phases - phase dashboard and per-phase queues"""

from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query

from lending_engine.api.dependencies import get_loan_repository
from lending_engine.api.v1.schemas import PhaseBucketSchema, PhasesResponse, QueueItem, QueueResponse
from lending_engine.domain.models import Phase
from lending_engine.domain.phases import QueueFilter, loans_in_phase, project_phases
from lending_engine.domain.risk import classify_risk, summarize_risk
from lending_engine.infrastructure.database.repositories import LoanRepository

router = APIRouter()


@router.get("/phases", response_model=PhasesResponse)
def get_phases(repository: LoanRepository = Depends(get_loan_repository)):
    """
    Loan ids and counts for all four phases plus the pipeline risk summary.

    Rebuilt from loan status on every call.
    """
    loans = repository.read_loans()
    clients = repository.read_clients()
    buckets = project_phases(loans)

    return PhasesResponse(
        phases=[
            PhaseBucketSchema(
                phase=int(bucket.phase),
                label=bucket.phase.label,
                loan_ids=list(bucket.loan_ids),
                count=bucket.count,
            )
            for bucket in buckets.values()
        ],
        risk_summary={level.value: count for level, count in summarize_risk(loans, clients).items()},
    )


@router.get("/phases/{phase}", response_model=QueueResponse)
def get_phase_queue(
    phase: int,
    min_amount: Decimal | None = Query(None, ge=0),
    max_amount: Decimal | None = Query(None, ge=0),
    min_credit_score: int | None = Query(None, ge=0),
    q: str | None = Query(None, description="Search client name, client id or loan id"),
    repository: LoanRepository = Depends(get_loan_repository),
):
    """Queue for one phase, annotated with freshly computed risk"""
    try:
        selected = Phase(phase)
    except ValueError:
        raise HTTPException(status_code=404, detail="Unknown phase")

    clients = repository.read_clients()
    queue = loans_in_phase(
        repository.read_loans(),
        selected,
        QueueFilter(min_amount=min_amount, max_amount=max_amount, min_credit_score=min_credit_score, search=q),
    )

    items = []
    for loan in queue:
        assessment = classify_risk(loan, clients.get(loan.client_id))
        items.append(
            QueueItem(
                loan_id=loan.id,
                loan_number=loan.loan_number,
                client_name=loan.client_name,
                principal_amount=float(loan.principal_amount),
                status=loan.status.value,
                credit_score=loan.credit_score,
                risk_level=assessment.risk_level.value if assessment else None,
                risk_score=assessment.risk_score if assessment else None,
            )
        )

    return QueueResponse(phase=int(selected), label=selected.label, count=len(items), loans=items)
