"""Unit tests for the approval state machine"""

import pytest
from datetime import date
from decimal import Decimal
from lending_engine.domain.exceptions import (
    ConfirmationRequiredError,
    IllegalTransitionError,
    InsufficientFundsError,
    InvalidInputError,
    MissingFundingSourceError,
)
from lending_engine.domain.models import FundingSource, LoanStatus
from lending_engine.domain.workflow import (
    ADVANCE_TRANSITIONS,
    TERMINAL_STATUSES,
    check_funding,
    plan_advance,
    plan_reject,
    requires_confirmation,
)

TODAY = date(2024, 3, 15)


def test_pipeline_is_linear():
    walk = [LoanStatus.PENDING]
    while walk[-1] in ADVANCE_TRANSITIONS:
        walk.append(ADVANCE_TRANSITIONS[walk[-1]])

    assert walk == [
        LoanStatus.PENDING,
        LoanStatus.UNDER_REVIEW,
        LoanStatus.NEED_APPROVAL,
        LoanStatus.APPROVED,
        LoanStatus.DISBURSED,
        LoanStatus.ACTIVE,
    ]


def test_pending_advances_without_confirmation(make_loan):
    change = plan_advance(make_loan(status="Pending"), TODAY)

    assert change.from_status == LoanStatus.PENDING
    assert change.to_status == LoanStatus.UNDER_REVIEW
    assert change.fields == {}
    assert change.debit is None


@pytest.mark.parametrize("status", ["Under Review", "Need Approval"])
def test_checkpoints_require_confirmation(make_loan, status):
    with pytest.raises(ConfirmationRequiredError) as exc_info:
        plan_advance(make_loan(status=status), TODAY)

    proposal = exc_info.value.change
    assert proposal.from_status == LoanStatus.parse(status)
    assert proposal.to_status == ADVANCE_TRANSITIONS[LoanStatus.parse(status)]


def test_confirmation_flags():
    assert not requires_confirmation(LoanStatus.PENDING)
    assert requires_confirmation(LoanStatus.UNDER_REVIEW)
    assert requires_confirmation(LoanStatus.NEED_APPROVAL)
    assert requires_confirmation(LoanStatus.APPROVED)
    assert not requires_confirmation(LoanStatus.DISBURSED)


def test_approval_stamps_approved_date(make_loan):
    change = plan_advance(make_loan(status="Need Approval"), TODAY, confirmed=True)

    assert change.to_status == LoanStatus.APPROVED
    assert change.fields == {"approved_date": TODAY}


def test_disbursement_stamps_and_plans_debit(make_loan, main_account):
    loan = make_loan(status="Approved", principal_amount=150000)

    change = plan_advance(loan, TODAY, funding_source=main_account, confirmed=True)

    assert change.to_status == LoanStatus.DISBURSED
    assert change.fields == {"disbursement_date": TODAY, "payment_source_id": "acc_main"}
    assert change.debit.source_id == "acc_main"
    assert change.debit.amount == Decimal("150000")


def test_disbursement_date_can_be_chosen(make_loan, main_account):
    chosen = date(2024, 4, 1)
    change = plan_advance(
        make_loan(status="Approved"), TODAY, funding_source=main_account, disbursement_date=chosen, confirmed=True
    )
    assert change.fields["disbursement_date"] == chosen


def test_disbursed_becomes_active(make_loan):
    change = plan_advance(make_loan(status="Disbursed"), TODAY)
    assert change.to_status == LoanStatus.ACTIVE


def test_disbursement_without_source_fails(make_loan):
    with pytest.raises(MissingFundingSourceError):
        plan_advance(make_loan(status="Approved"), TODAY, confirmed=True)


def test_funding_checked_before_confirmation(make_loan):
    """An unconfirmed disbursement with no source reports the funding problem"""
    with pytest.raises(MissingFundingSourceError):
        plan_advance(make_loan(status="Approved"), TODAY)


def test_inactive_source_rejected(make_loan):
    closed = FundingSource(id="acc_closed", name="Old Till", balance=Decimal("5000000"), status="Closed")
    with pytest.raises(MissingFundingSourceError):
        check_funding(make_loan(), closed)


@pytest.mark.parametrize("balance", ["50000", "49999", "0"])
def test_balance_must_stay_positive(make_loan, balance):
    """balance - principal <= 0 blocks disbursement"""
    source = FundingSource(id="acc", name="Till", balance=Decimal(balance))
    with pytest.raises(InsufficientFundsError):
        check_funding(make_loan(principal_amount=50000), source)


def test_balance_just_enough(make_loan):
    source = FundingSource(id="acc", name="Till", balance=Decimal("50001"))
    assert check_funding(make_loan(principal_amount=50000), source) is source


@pytest.mark.parametrize("status", ["Active", "Rejected", "In Arrears", "Closed", "Fully Paid", "Written Off"])
def test_terminal_statuses_cannot_advance(make_loan, status):
    with pytest.raises(IllegalTransitionError):
        plan_advance(make_loan(status=status), TODAY, confirmed=True)


@pytest.mark.parametrize(
    "status",
    [status for status in LoanStatus if status not in TERMINAL_STATUSES],
)
def test_reject_from_any_open_status(make_loan, status):
    change = plan_reject(make_loan(status=status), "  Incomplete KYC  ", TODAY)

    assert change.to_status == LoanStatus.REJECTED
    assert change.fields == {"rejection_reason": "Incomplete KYC", "rejected_date": TODAY}


def test_reject_requires_reason(make_loan):
    with pytest.raises(InvalidInputError):
        plan_reject(make_loan(), "   ", TODAY)


@pytest.mark.parametrize("status", ["Rejected", "Active", "In Arrears", "Closed", "Written Off"])
def test_reject_terminal_is_illegal(make_loan, status):
    """Even without a reason, a terminal loan reports the illegal transition"""
    with pytest.raises(IllegalTransitionError) as exc_info:
        plan_reject(make_loan(status=status), "", TODAY)
    assert exc_info.value.action == "reject"


def test_planning_does_not_mutate_loan(make_loan, main_account):
    loan = make_loan(status="Approved")
    plan_advance(loan, TODAY, funding_source=main_account, confirmed=True)

    assert loan.status == LoanStatus.APPROVED
    assert loan.disbursement_date is None
    assert main_account.balance == Decimal("1000000")
