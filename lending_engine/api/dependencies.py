"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from lending_engine.config import settings
from lending_engine.infrastructure.clients.ledger import LedgerClient
from lending_engine.infrastructure.database.repositories import FundingSourceRepository, LoanRepository
from lending_engine.infrastructure.database.session import get_db
from lending_engine.services.approval import ApprovalService, FundingLedger
from lending_engine.utils.money import CurrencyConfig


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_currency() -> CurrencyConfig:
    return settings.currency()


def get_loan_repository(db: Session = Depends(get_db)) -> LoanRepository:
    return LoanRepository(db)


def get_funding_ledger(db: Session = Depends(get_db)) -> FundingLedger:
    """External ledger when configured, otherwise funding sources in the loan database"""
    if settings.ledger_api_base:
        return LedgerClient()
    return FundingSourceRepository(db)


def get_approval_service(
    store: LoanRepository = Depends(get_loan_repository),
    ledger: FundingLedger = Depends(get_funding_ledger),
) -> ApprovalService:
    return ApprovalService(store, ledger)
