"""Domain models - pure Python dataclasses representing lending entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Dict, Optional, Tuple

from lending_engine.domain.exceptions import InvalidInputError


def _normalize(value: str) -> str:
    return " ".join(value.replace("-", " ").replace("_", " ").split()).lower()


class LoanStatus(str, Enum):
    """Lifecycle status of a loan"""

    PENDING = "Pending"
    UNDER_REVIEW = "Under Review"
    NEED_APPROVAL = "Need Approval"
    APPROVED = "Approved"
    DISBURSED = "Disbursed"
    ACTIVE = "Active"
    REJECTED = "Rejected"
    IN_ARREARS = "In Arrears"
    # Set by servicing after the loan leaves Active; the engine only reads them
    CLOSED = "Closed"
    FULLY_PAID = "Fully Paid"
    WRITTEN_OFF = "Written Off"

    @classmethod
    def parse(cls, value: "str | LoanStatus") -> "LoanStatus":
        """Parse stored status strings, which come in mixed case"""
        if isinstance(value, cls):
            return value
        wanted = _normalize(value or "")
        for status in cls:
            if _normalize(status.value) == wanted:
                return status
        raise InvalidInputError(f"Unknown loan status: {value!r}")


class InterestMethod(str, Enum):
    """How interest accrues over the tenor"""

    FLAT = "Flat"
    REDUCING_BALANCE = "Reducing Balance"

    @classmethod
    def parse(cls, value: "str | InterestMethod") -> "InterestMethod":
        if isinstance(value, cls):
            return value
        wanted = _normalize(value or "").replace(" ", "")
        if wanted == "flat":
            return cls.FLAT
        if wanted in ("reducingbalance", "reducing", "decliningbalance", "declining"):
            return cls.REDUCING_BALANCE
        raise InvalidInputError(f"Unknown interest method: {value!r}")


class RepaymentFrequency(str, Enum):
    """Repayment frequency with its period length in days"""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"

    @property
    def days(self) -> int:
        return _FREQUENCY_DAYS[self]

    @classmethod
    def parse(cls, value: "str | RepaymentFrequency | None") -> "RepaymentFrequency":
        """Unknown or missing frequencies fall back to monthly"""
        if isinstance(value, cls):
            return value
        wanted = _normalize(value or "")
        for frequency in cls:
            if _normalize(frequency.value) == wanted:
                return frequency
        return cls.MONTHLY


_FREQUENCY_DAYS = {
    RepaymentFrequency.DAILY: 1,
    RepaymentFrequency.WEEKLY: 7,
    RepaymentFrequency.BI_WEEKLY: 14,
    RepaymentFrequency.MONTHLY: 30,
    RepaymentFrequency.QUARTERLY: 90,
}


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Phase(IntEnum):
    """Coarse dashboard grouping of statuses"""

    AUTO_ASSESSMENT = 1
    MANAGER_APPROVAL = 2
    DISBURSEMENT = 3
    LIVE = 4

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass
class ClientRecord:
    """Borrower identity and underwriting attributes (read-only to the engine)"""

    id: str
    name: str = ""
    date_of_birth: Optional[date] = None
    has_guarantor: bool = False
    has_collateral: bool = False


@dataclass
class LoanRecord:
    """A loan application or live loan"""

    id: str
    client_id: str
    principal_amount: Decimal
    interest_rate: Decimal  # annual, percent
    tenor: int  # number of repayment periods
    status: LoanStatus = LoanStatus.PENDING
    loan_number: str = ""
    interest_method: InterestMethod = InterestMethod.FLAT
    repayment_frequency: RepaymentFrequency = RepaymentFrequency.MONTHLY
    approved_date: Optional[date] = None
    disbursement_date: Optional[date] = None
    payment_source_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    rejected_date: Optional[date] = None
    has_guarantor: bool = False
    has_collateral: bool = False
    credit_score: Optional[int] = None  # bureau score when available
    loan_product_id: Optional[str] = None
    client_name: str = ""

    def __post_init__(self):
        self.principal_amount = Decimal(str(self.principal_amount))
        self.interest_rate = Decimal(str(self.interest_rate))
        self.status = LoanStatus.parse(self.status)
        self.interest_method = InterestMethod.parse(self.interest_method)
        self.repayment_frequency = RepaymentFrequency.parse(self.repayment_frequency)

    def validate_terms(self) -> None:
        """Raise InvalidInputError unless principal > 0, tenor > 0 and rate in [0, 100]"""
        if self.principal_amount <= 0:
            raise InvalidInputError(f"Loan {self.id}: principal must be positive")
        if self.tenor <= 0:
            raise InvalidInputError(f"Loan {self.id}: tenor must be positive")
        if not Decimal(0) <= self.interest_rate <= Decimal(100):
            raise InvalidInputError(f"Loan {self.id}: interest rate must be between 0 and 100")


@dataclass(frozen=True)
class ScheduleEntry:
    """Single period in a repayment schedule"""

    period: int
    payment: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal
    due_date: Optional[date] = None


@dataclass(frozen=True)
class RepaymentQuote:
    """Output of the interest calculator"""

    per_period_payment: Decimal
    total_interest: Decimal
    total_repayment: Decimal
    schedule: Tuple[ScheduleEntry, ...]


@dataclass(frozen=True)
class RiskAssessment:
    """Scorecard outcome with the points contributed by each factor"""

    risk_level: RiskLevel
    risk_score: int
    factors: Dict[str, int] = field(default_factory=dict)


@dataclass
class FundingSource:
    """Bank, cash or mobile-money account loans are disbursed from"""

    id: str
    name: str
    balance: Decimal
    account_type: str = "bank"
    status: Optional[str] = "Active"

    def __post_init__(self):
        self.balance = Decimal(str(self.balance))

    @property
    def is_active(self) -> bool:
        return not self.status or self.status.strip().lower() == "active"


@dataclass(frozen=True)
class FundingDebit:
    source_id: str
    amount: Decimal


@dataclass(frozen=True)
class StatusChange:
    """Planned effect of a single transition, applied all-or-nothing"""

    loan_id: str
    from_status: LoanStatus
    to_status: LoanStatus
    fields: Dict[str, object] = field(default_factory=dict)
    debit: Optional[FundingDebit] = None


@dataclass(frozen=True)
class TransitionResult:
    """Per-loan outcome of a bulk operation"""

    loan_id: str
    change: Optional[StatusChange] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BulkTransitionResult:
    results: list = field(default_factory=list)

    @property
    def succeeded(self) -> list:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list:
        return [r for r in self.results if not r.ok]


@dataclass(frozen=True)
class PhaseBucket:
    """View-only grouping of loan ids by phase"""

    phase: Phase
    loan_ids: Tuple[str, ...]

    @property
    def count(self) -> int:
        return len(self.loan_ids)
