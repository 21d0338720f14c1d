"""Mapping of domain errors to HTTP responses"""

from fastapi import HTTPException

from lending_engine.domain.exceptions import (
    ConcurrentMutationConflictError,
    ConfirmationRequiredError,
    DomainException,
    IllegalTransitionError,
    InvalidInputError,
    LedgerAPIError,
    LoanNotFoundError,
    MissingFundingSourceError,
)

# Order matters: subclasses before their bases
_STATUS_CODES = [
    (LoanNotFoundError, 404),
    (IllegalTransitionError, 409),
    (ConcurrentMutationConflictError, 409),
    (ConfirmationRequiredError, 428),
    (MissingFundingSourceError, 422),
    (InvalidInputError, 422),
    (LedgerAPIError, 503),
]


def to_http_error(error: DomainException) -> HTTPException:
    status_code = next((code for cls, code in _STATUS_CODES if isinstance(error, cls)), 400)
    detail = {
        "error": type(error).__name__,
        "message": str(error),
        "retryable": getattr(error, "retryable", False),
    }
    return HTTPException(status_code=status_code, detail=detail)
