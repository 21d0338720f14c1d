"""Interest calculator - repayment amounts and amortization schedules"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from lending_engine.domain.exceptions import InvalidInputError
from lending_engine.domain.models import (
    InterestMethod,
    LoanRecord,
    RepaymentFrequency,
    RepaymentQuote,
    ScheduleEntry,
)
from lending_engine.utils.date_utils import generate_due_dates
from lending_engine.utils.money import DEFAULT_CURRENCY, CurrencyConfig, Number, round_money, to_decimal

MONTHS_PER_YEAR = 12


def _parse_terms(principal: Number, annual_rate_percent: Number, tenor_periods: Number):
    """Return (principal, rate, tenor) or None when the terms are not computable"""
    try:
        amount = to_decimal(principal)
        rate = to_decimal(annual_rate_percent)
        tenor = to_decimal(tenor_periods)
    except (InvalidOperation, ValueError, TypeError):
        return None

    if not (amount.is_finite() and rate.is_finite() and tenor.is_finite()):
        return None
    if amount <= 0 or tenor <= 0 or rate < 0:
        return None
    if tenor != tenor.to_integral_value():
        return None
    return amount, rate, int(tenor)


def _flat_rows(principal: Decimal, rate: Decimal, tenor: int, currency: CurrencyConfig):
    total_interest = round_money(principal * rate / 100, currency)
    payment = round_money((principal + total_interest) / tenor, currency)
    period_principal = round_money(principal / tenor, currency)
    period_interest = round_money(total_interest / tenor, currency)

    balance = round_money(principal, currency)
    interest_left = total_interest
    rows = []
    for period in range(1, tenor + 1):
        if period == tenor:
            # Final period absorbs the rounding remainder
            principal_part, interest_part = balance, interest_left
        else:
            principal_part = min(period_principal, balance)
            interest_part = min(period_interest, interest_left)
        balance -= principal_part
        interest_left -= interest_part
        rows.append((principal_part, interest_part, balance))

    return payment, total_interest, rows


def _reducing_rows(principal: Decimal, rate: Decimal, tenor: int, currency: CurrencyConfig):
    monthly_rate = rate / 100 / MONTHS_PER_YEAR

    if monthly_rate == 0:
        payment = round_money(principal / tenor, currency)
    else:
        growth = (1 + monthly_rate) ** tenor
        payment = round_money(principal * monthly_rate * growth / (growth - 1), currency)

    balance = round_money(principal, currency)
    rows = []
    for period in range(1, tenor + 1):
        interest_part = round_money(balance * monthly_rate, currency)
        if period == tenor:
            principal_part = balance
        else:
            principal_part = min(max(payment - interest_part, Decimal(0)), balance)
        balance -= principal_part
        rows.append((principal_part, interest_part, balance))

    total_interest = sum((row[1] for row in rows), Decimal(0))
    return payment, total_interest, rows


def compute_schedule(
    principal: Number,
    annual_rate_percent: Number,
    tenor_periods: Number,
    method: InterestMethod | str,
    currency: CurrencyConfig = DEFAULT_CURRENCY,
    start_date: Optional[date] = None,
    frequency: RepaymentFrequency | str = RepaymentFrequency.MONTHLY,
) -> Optional[RepaymentQuote]:
    """
    Compute the per-period payment, totals and full amortization schedule.

    Flat: interest = principal x rate, charged once and spread evenly.
    Reducing balance: standard annuity on rate/12 per period, interest on the
    running balance.

    Every amount is rounded half-up to the currency's minor unit per row, and
    the final period takes whatever principal is left so the balance ends at
    exactly zero.

    Returns:
        RepaymentQuote, or None when principal/tenor are not positive or the
        rate is negative. Callers must treat None as "not computable".

    Example:
        100000 at 12% Flat over 12 -> payment 9333, interest 12000, total 112000
    """
    terms = _parse_terms(principal, annual_rate_percent, tenor_periods)
    if terms is None:
        return None
    amount, rate, tenor = terms

    try:
        method = InterestMethod.parse(method)
    except InvalidInputError:
        return None

    if method is InterestMethod.FLAT:
        payment, total_interest, rows = _flat_rows(amount, rate, tenor, currency)
    else:
        payment, total_interest, rows = _reducing_rows(amount, rate, tenor, currency)

    due_dates: List[Optional[date]] = [None] * tenor
    if start_date is not None:
        due_dates = generate_due_dates(start_date, tenor, RepaymentFrequency.parse(frequency).days)

    schedule = tuple(
        ScheduleEntry(
            period=index + 1,
            payment=principal_part + interest_part,
            principal=principal_part,
            interest=interest_part,
            balance=balance,
            due_date=due_dates[index],
        )
        for index, (principal_part, interest_part, balance) in enumerate(rows)
    )

    return RepaymentQuote(
        per_period_payment=payment,
        total_interest=total_interest,
        total_repayment=round_money(amount, currency) + total_interest,
        schedule=schedule,
    )


def quote_for_loan(
    loan: LoanRecord,
    currency: CurrencyConfig = DEFAULT_CURRENCY,
    start_date: Optional[date] = None,
) -> Optional[RepaymentQuote]:
    """Schedule derived from a loan's own terms (never persisted)"""
    return compute_schedule(
        loan.principal_amount,
        loan.interest_rate,
        loan.tenor,
        loan.interest_method,
        currency=currency,
        start_date=start_date,
        frequency=loan.repayment_frequency,
    )
