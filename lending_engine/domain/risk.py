"""Risk scorecard - additive, threshold-based loan risk classification"""

from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Optional

from lending_engine.domain.models import ClientRecord, LoanRecord, LoanStatus, RiskAssessment, RiskLevel
from lending_engine.utils.date_utils import age_in_years

HIGH_RISK_THRESHOLD = 60
MEDIUM_RISK_THRESHOLD = 40

# Statuses still awaiting a decision; risk summaries only count these
PIPELINE_STATUSES = frozenset(
    {
        LoanStatus.PENDING,
        LoanStatus.UNDER_REVIEW,
        LoanStatus.NEED_APPROVAL,
        LoanStatus.APPROVED,
    }
)


def score_amount(principal: Decimal) -> int:
    if principal > 100_000:
        return 30
    elif principal > 50_000:
        return 20
    elif principal > 20_000:
        return 10
    return 5


def score_rate(interest_rate: Decimal) -> int:
    if interest_rate > 20:
        return 20
    elif interest_rate > 15:
        return 10
    return 5


def score_tenor(tenor: int) -> int:
    if tenor > 24:
        return 15
    elif tenor > 12:
        return 10
    return 5


def score_age(age: Optional[int]) -> int:
    """Unknown age is skipped, not penalized"""
    if age is None:
        return 0
    if age < 25 or age > 65:
        return 20
    elif age < 30 or age > 60:
        return 10
    return 5


def score_security(has_guarantor: bool, has_collateral: bool) -> int:
    if not has_guarantor and not has_collateral:
        return 15
    elif not has_guarantor or not has_collateral:
        return 10
    return 0


def determine_risk_level(score: int) -> RiskLevel:
    """
    Map summed points to a level.

    Bands:
    - 60+:   High
    - 40-59: Medium
    - <40:   Low
    """
    if score >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    elif score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_risk(
    loan: LoanRecord,
    client: Optional[ClientRecord],
    as_of: Optional[date] = None,
) -> Optional[RiskAssessment]:
    """
    Score a loan on five independent factors and classify the total.

    Factors:
    - amount:   >100k 30, >50k 20, >20k 10, else 5
    - rate:     >20% 20, >15% 10, else 5
    - tenor:    >24 15, >12 10, else 5
    - age:      <25 or >65 20, <30 or >60 10, else 5, unknown 0
    - security: no guarantor and no collateral 15, only one 10, both 0

    Guarantor and collateral count as present when either the loan or the
    client carries them. The result is recomputed on every call and must not
    be stored on the loan.

    Returns:
        RiskAssessment, or None when the loan's principal or tenor is not positive
    """
    if loan.principal_amount <= 0 or loan.tenor <= 0:
        return None

    as_of = as_of or date.today()
    age = None
    if client is not None and client.date_of_birth is not None:
        age = age_in_years(client.date_of_birth, as_of)

    has_guarantor = loan.has_guarantor or bool(client and client.has_guarantor)
    has_collateral = loan.has_collateral or bool(client and client.has_collateral)

    factors = {
        "amount": score_amount(loan.principal_amount),
        "rate": score_rate(loan.interest_rate),
        "tenor": score_tenor(loan.tenor),
        "age": score_age(age),
        "security": score_security(has_guarantor, has_collateral),
    }
    score = sum(factors.values())

    return RiskAssessment(risk_level=determine_risk_level(score), risk_score=score, factors=factors)


def summarize_risk(
    loans: Iterable[LoanRecord],
    clients: Dict[str, ClientRecord],
    as_of: Optional[date] = None,
) -> Dict[RiskLevel, int]:
    """Count risk levels across loans still in the approval pipeline"""
    counts = {level: 0 for level in RiskLevel}
    for loan in loans:
        if loan.status not in PIPELINE_STATUSES:
            continue
        assessment = classify_risk(loan, clients.get(loan.client_id), as_of)
        if assessment is not None:
            counts[assessment.risk_level] += 1
    return counts
