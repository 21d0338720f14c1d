"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidInputError(DomainException):
    """Input is malformed or outside the accepted range"""

    pass


class LoanNotFoundError(DomainException):
    """Referenced loan does not exist"""

    def __init__(self, loan_id: str):
        super().__init__(f"Loan {loan_id} not found")
        self.loan_id = loan_id


class IllegalTransitionError(DomainException):
    """Requested status change is not in the transition table"""

    def __init__(self, loan_id: str, status: str, action: str = "advance"):
        super().__init__(f"Cannot {action} loan {loan_id} from status '{status}'")
        self.loan_id = loan_id
        self.status = status
        self.action = action


class ConfirmationRequiredError(DomainException):
    """Transition is a manual checkpoint and was not confirmed by the caller"""

    def __init__(self, change):
        super().__init__(
            f"Moving loan {change.loan_id} from '{change.from_status.value}' "
            f"to '{change.to_status.value}' requires confirmation"
        )
        self.change = change


class MissingFundingSourceError(DomainException):
    """Disbursement attempted without a usable funding source"""

    pass


class InsufficientFundsError(MissingFundingSourceError):
    """Selected funding source cannot cover the disbursement"""

    pass


class ConcurrentMutationConflictError(DomainException):
    """Loan status changed between read and write (lost compare-and-swap)"""

    retryable = True

    def __init__(self, loan_id: str, expected_status: str):
        super().__init__(f"Loan {loan_id} is no longer in status '{expected_status}'")
        self.loan_id = loan_id
        self.expected_status = expected_status


class LedgerAPIError(DomainException):
    """Ledger service returned an error or is unavailable"""

    pass
