"""Approval state machine - legal transitions and the fields each one stamps"""

from datetime import date
from typing import Dict, Optional

from lending_engine.domain.exceptions import (
    ConfirmationRequiredError,
    IllegalTransitionError,
    InsufficientFundsError,
    InvalidInputError,
    MissingFundingSourceError,
)
from lending_engine.domain.models import FundingDebit, FundingSource, LoanRecord, LoanStatus, StatusChange

# Linear pipeline; anything absent here cannot be advanced
ADVANCE_TRANSITIONS: Dict[LoanStatus, LoanStatus] = {
    LoanStatus.PENDING: LoanStatus.UNDER_REVIEW,
    LoanStatus.UNDER_REVIEW: LoanStatus.NEED_APPROVAL,
    LoanStatus.NEED_APPROVAL: LoanStatus.APPROVED,
    LoanStatus.APPROVED: LoanStatus.DISBURSED,
    LoanStatus.DISBURSED: LoanStatus.ACTIVE,
}

TERMINAL_STATUSES = frozenset(
    {
        LoanStatus.REJECTED,
        LoanStatus.ACTIVE,
        LoanStatus.IN_ARREARS,
        LoanStatus.CLOSED,
        LoanStatus.FULLY_PAID,
        LoanStatus.WRITTEN_OFF,
    }
)

REJECTABLE_STATUSES = frozenset(status for status in LoanStatus if status not in TERMINAL_STATUSES)

# Human-in-the-loop checkpoints: move to manager approval, approve, disburse
CONFIRMATION_REQUIRED = frozenset(
    {
        LoanStatus.UNDER_REVIEW,
        LoanStatus.NEED_APPROVAL,
        LoanStatus.APPROVED,
    }
)


def next_status(loan: LoanRecord) -> LoanStatus:
    """Status one step forward, or IllegalTransitionError"""
    try:
        return ADVANCE_TRANSITIONS[loan.status]
    except KeyError:
        raise IllegalTransitionError(loan.id, loan.status.value) from None


def requires_confirmation(from_status: LoanStatus) -> bool:
    return from_status in CONFIRMATION_REQUIRED


def check_funding(loan: LoanRecord, funding_source: Optional[FundingSource]) -> FundingSource:
    """
    Disbursement preconditions on the funding source.

    The source must exist, be active, and still hold a positive balance
    after the principal is debited.
    """
    if funding_source is None:
        raise MissingFundingSourceError(f"Loan {loan.id}: no funding source selected")
    if not funding_source.is_active:
        raise MissingFundingSourceError(f"Funding source {funding_source.id} is not active")
    if funding_source.balance - loan.principal_amount <= 0:
        raise InsufficientFundsError(
            f"Funding source {funding_source.id} balance {funding_source.balance} "
            f"cannot cover disbursement of {loan.principal_amount}"
        )
    return funding_source


def plan_advance(
    loan: LoanRecord,
    today: date,
    funding_source: Optional[FundingSource] = None,
    disbursement_date: Optional[date] = None,
    confirmed: bool = False,
) -> StatusChange:
    """
    Decide the single forward step for a loan without applying it.

    - Approved stamps approved_date
    - Disbursed stamps disbursement_date and payment_source_id and plans a
      debit of the principal from the funding source

    Checks run in order: legality, funding, confirmation. Unconfirmed
    checkpoints raise ConfirmationRequiredError carrying the full proposal.
    """
    target = next_status(loan)
    fields: Dict[str, object] = {}
    debit = None

    if target is LoanStatus.APPROVED:
        fields["approved_date"] = today
    elif target is LoanStatus.DISBURSED:
        source = check_funding(loan, funding_source)
        fields["disbursement_date"] = disbursement_date or today
        fields["payment_source_id"] = source.id
        debit = FundingDebit(source_id=source.id, amount=loan.principal_amount)

    change = StatusChange(
        loan_id=loan.id,
        from_status=loan.status,
        to_status=target,
        fields=fields,
        debit=debit,
    )

    if requires_confirmation(loan.status) and not confirmed:
        raise ConfirmationRequiredError(change)
    return change


def plan_reject(loan: LoanRecord, reason: str, today: date) -> StatusChange:
    """Rejection is allowed from any non-terminal status and is irreversible"""
    if loan.status not in REJECTABLE_STATUSES:
        raise IllegalTransitionError(loan.id, loan.status.value, action="reject")
    if not reason or not reason.strip():
        raise InvalidInputError("A rejection reason is required")

    return StatusChange(
        loan_id=loan.id,
        from_status=loan.status,
        to_status=LoanStatus.REJECTED,
        fields={"rejection_reason": reason.strip(), "rejected_date": today},
    )
