"""Phase/queue projection - dashboard buckets derived from loan status"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from lending_engine.domain.models import LoanRecord, LoanStatus, Phase, PhaseBucket

PHASE_STATUSES: Dict[Phase, frozenset] = {
    Phase.AUTO_ASSESSMENT: frozenset({LoanStatus.PENDING, LoanStatus.UNDER_REVIEW}),
    Phase.MANAGER_APPROVAL: frozenset({LoanStatus.NEED_APPROVAL}),
    Phase.DISBURSEMENT: frozenset({LoanStatus.APPROVED}),
    Phase.LIVE: frozenset({LoanStatus.ACTIVE, LoanStatus.DISBURSED, LoanStatus.IN_ARREARS}),
}


def phase_of(status: LoanStatus) -> Optional[Phase]:
    """Phase containing the status; Rejected belongs to none"""
    for phase, statuses in PHASE_STATUSES.items():
        if status in statuses:
            return phase
    return None


def project_phases(loans: Iterable[LoanRecord]) -> Dict[Phase, PhaseBucket]:
    """
    Bucket loans by phase, preserving input order within each bucket.

    Always returns all four phases. Holds no state: the loan's status is the
    only source of truth for its phase.
    """
    ids: Dict[Phase, List[str]] = {phase: [] for phase in Phase}
    for loan in loans:
        phase = phase_of(loan.status)
        if phase is not None:
            ids[phase].append(loan.id)
    return {phase: PhaseBucket(phase=phase, loan_ids=tuple(loan_ids)) for phase, loan_ids in ids.items()}


def phase_counts(loans: Iterable[LoanRecord]) -> Dict[Phase, int]:
    return {phase: bucket.count for phase, bucket in project_phases(loans).items()}


@dataclass(frozen=True)
class QueueFilter:
    """Optional narrowing of a phase queue; amount bounds are inclusive"""

    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    min_credit_score: Optional[int] = None
    search: Optional[str] = None

    def matches(self, loan: LoanRecord) -> bool:
        if self.min_amount is not None and loan.principal_amount < Decimal(str(self.min_amount)):
            return False
        if self.max_amount is not None and loan.principal_amount > Decimal(str(self.max_amount)):
            return False
        # Missing bureau score counts as zero
        if self.min_credit_score is not None and (loan.credit_score or 0) < self.min_credit_score:
            return False
        if self.search:
            needle = self.search.lower()
            haystack = (loan.client_name, loan.client_id, loan.id, loan.loan_number)
            if not any(needle in (value or "").lower() for value in haystack):
                return False
        return True


def loans_in_phase(
    loans: Iterable[LoanRecord],
    phase: Phase,
    queue_filter: Optional[QueueFilter] = None,
) -> List[LoanRecord]:
    """Loans currently in a phase, optionally filtered for the queue view"""
    statuses = PHASE_STATUSES[phase]
    return [
        loan
        for loan in loans
        if loan.status in statuses and (queue_filter is None or queue_filter.matches(loan))
    ]
