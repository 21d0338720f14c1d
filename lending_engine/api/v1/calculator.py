"""POST /v1/calculator/schedule - ad hoc repayment schedule"""

from fastapi import APIRouter, Depends, HTTPException

from lending_engine.api.dependencies import get_currency
from lending_engine.api.v1.schemas import ScheduleEntrySchema, ScheduleRequest, ScheduleResponse
from lending_engine.domain.calculator import compute_schedule
from lending_engine.domain.models import RepaymentQuote
from lending_engine.infrastructure.observability.metrics import record_schedule
from lending_engine.utils.money import CurrencyConfig, format_currency

router = APIRouter()


def to_schedule_response(quote: RepaymentQuote, currency: CurrencyConfig) -> ScheduleResponse:
    return ScheduleResponse(
        per_period_payment=float(quote.per_period_payment),
        total_interest=float(quote.total_interest),
        total_repayment=float(quote.total_repayment),
        formatted_payment=format_currency(quote.per_period_payment, currency),
        schedule=[
            ScheduleEntrySchema(
                period=entry.period,
                payment=float(entry.payment),
                principal=float(entry.principal),
                interest=float(entry.interest),
                balance=float(entry.balance),
                due_date=entry.due_date,
            )
            for entry in quote.schedule
        ],
    )


@router.post("/calculator/schedule", response_model=ScheduleResponse)
def calculate_schedule(
    request_body: ScheduleRequest,
    currency: CurrencyConfig = Depends(get_currency),
):
    """
    Compute payment, totals and amortization schedule.

    Returns 422 when the terms are not computable rather than a schedule of zeros.
    """
    quote = compute_schedule(
        request_body.principal,
        request_body.annual_rate_percent,
        request_body.tenor_periods,
        request_body.method,
        currency=currency,
        start_date=request_body.start_date,
        frequency=request_body.frequency,
    )
    record_schedule(request_body.method.value, quote is not None)

    if quote is None:
        raise HTTPException(status_code=422, detail="Schedule not computable: principal and tenor must be positive")

    return to_schedule_response(quote, currency)
