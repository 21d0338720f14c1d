"""Approval workflow service - applies state machine transitions through collaborators"""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from lending_engine.domain.exceptions import DomainException, LoanNotFoundError, MissingFundingSourceError
from lending_engine.domain.models import (
    BulkTransitionResult,
    ClientRecord,
    FundingSource,
    LoanRecord,
    LoanStatus,
    StatusChange,
    TransitionResult,
)
from lending_engine.domain.workflow import next_status, plan_advance, plan_reject
from lending_engine.infrastructure.observability.logging import log_bulk_outcome, log_transition
from lending_engine.infrastructure.observability.metrics import funding_failure_counter, record_transition

logger = logging.getLogger(__name__)


class LoanStore(Protocol):
    """Persistence collaborator; must reject writes whose expected status is stale"""

    def read_loans(self) -> List[LoanRecord]: ...

    def read_clients(self) -> Dict[str, ClientRecord]: ...

    def get_loan(self, loan_id: str) -> Optional[LoanRecord]: ...

    def write_loan_status(
        self,
        loan_id: str,
        expected_status: LoanStatus,
        new_status: LoanStatus,
        fields: Dict[str, object],
    ) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class FundingLedger(Protocol):
    """Funding/ledger collaborator"""

    def list_funding_sources(self, status: str = "Active") -> List[FundingSource]: ...

    def debit(self, source_id: str, amount: Decimal) -> None: ...


class ApprovalService:
    """
    Moves loans through the approval pipeline.

    Each transition is planned by the pure state machine, then applied as one
    unit: compare-and-swap status write, ledger debit (disbursement only), and
    commit. On any failure the store is rolled back and the error re-raised,
    so nothing is stamped. No retries happen here; a
    ConcurrentMutationConflictError is for the caller to retry after
    re-reading the loan.
    """

    def __init__(self, store: LoanStore, ledger: FundingLedger, clock: Callable[[], date] = date.today):
        self.store = store
        self.ledger = ledger
        self.clock = clock

    def _load(self, loan_id: str) -> LoanRecord:
        loan = self.store.get_loan(loan_id)
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    def _resolve_funding_source(self, funding_source_id: Optional[str]) -> FundingSource:
        sources = self.ledger.list_funding_sources(status="Active")
        if not sources:
            raise MissingFundingSourceError("No active funding sources available")
        if not funding_source_id:
            raise MissingFundingSourceError("No funding source selected for disbursement")
        for source in sources:
            if source.id == funding_source_id:
                return source
        raise MissingFundingSourceError(f"Funding source {funding_source_id} is not available")

    def _plan_advance(
        self,
        loan: LoanRecord,
        confirmed: bool,
        funding_source_id: Optional[str],
        disbursement_date: Optional[date],
    ) -> StatusChange:
        funding_source = None
        if next_status(loan) is LoanStatus.DISBURSED:
            funding_source = self._resolve_funding_source(funding_source_id)
        return plan_advance(
            loan,
            today=self.clock(),
            funding_source=funding_source,
            disbursement_date=disbursement_date,
            confirmed=confirmed,
        )

    def _apply(self, change: StatusChange) -> None:
        debited = False
        try:
            self.store.write_loan_status(change.loan_id, change.from_status, change.to_status, change.fields)
            if change.debit is not None:
                self.ledger.debit(change.debit.source_id, change.debit.amount)
                debited = True
            self.store.commit()
        except Exception:
            self.store.rollback()
            if debited:
                # An external ledger keeps the debit even though the status write is gone
                logger.error(
                    "Loan %s not committed after debiting %s from %s; reconcile funding source",
                    change.loan_id,
                    change.debit.amount,
                    change.debit.source_id,
                    extra={
                        "loan_id": change.loan_id,
                        "source_id": change.debit.source_id,
                        "amount": str(change.debit.amount),
                    },
                )
            raise

    def propose_advance(
        self,
        loan_id: str,
        funding_source_id: Optional[str] = None,
        disbursement_date: Optional[date] = None,
    ) -> StatusChange:
        """First half of propose/commit: what advance(confirmed=True) would apply"""
        loan = self._load(loan_id)
        return self._plan_advance(loan, True, funding_source_id, disbursement_date)

    def advance(
        self,
        loan_id: str,
        confirmed: bool = False,
        funding_source_id: Optional[str] = None,
        disbursement_date: Optional[date] = None,
    ) -> StatusChange:
        """Move a loan exactly one step forward"""
        loan = self._load(loan_id)
        try:
            change = self._plan_advance(loan, confirmed, funding_source_id, disbursement_date)
            self._apply(change)
        except DomainException as e:
            if isinstance(e, MissingFundingSourceError):
                funding_failure_counter.inc()
            record_transition(loan.status.value, "advance", type(e).__name__)
            log_transition(loan.id, loan.status.value, None, "failed", reason=str(e))
            raise

        record_transition(change.from_status.value, change.to_status.value, "applied")
        log_transition(loan.id, change.from_status.value, change.to_status.value, "applied")
        return change

    def reject(self, loan_id: str, reason: str) -> StatusChange:
        """Move a loan to Rejected; irreversible"""
        loan = self._load(loan_id)
        try:
            change = plan_reject(loan, reason, self.clock())
            self._apply(change)
        except DomainException as e:
            record_transition(loan.status.value, "reject", type(e).__name__)
            log_transition(loan.id, loan.status.value, LoanStatus.REJECTED.value, "failed", reason=str(e))
            raise

        record_transition(change.from_status.value, change.to_status.value, "applied")
        log_transition(loan.id, change.from_status.value, change.to_status.value, "applied", reason=reason)
        return change

    def _bulk(self, action: str, loan_ids: Iterable[str], apply: Callable[[str], StatusChange]) -> BulkTransitionResult:
        outcome = BulkTransitionResult()
        # Each loan succeeds or fails on its own; one failure never stops the batch
        for loan_id in dict.fromkeys(loan_ids):
            try:
                outcome.results.append(TransitionResult(loan_id=loan_id, change=apply(loan_id)))
            except DomainException as e:
                outcome.results.append(TransitionResult(loan_id=loan_id, error=e))
            except Exception as e:
                logger.exception("Unexpected error during bulk %s of loan %s", action, loan_id)
                outcome.results.append(TransitionResult(loan_id=loan_id, error=e))

        log_bulk_outcome(action, len(outcome.succeeded), len(outcome.failed))
        return outcome

    def bulk_advance(
        self,
        loan_ids: Iterable[str],
        confirmed: bool = False,
        funding_source_id: Optional[str] = None,
    ) -> BulkTransitionResult:
        return self._bulk(
            "advance",
            loan_ids,
            lambda loan_id: self.advance(loan_id, confirmed=confirmed, funding_source_id=funding_source_id),
        )

    def bulk_reject(self, loan_ids: Iterable[str], reason: str) -> BulkTransitionResult:
        return self._bulk("reject", loan_ids, lambda loan_id: self.reject(loan_id, reason))
