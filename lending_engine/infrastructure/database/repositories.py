"""Data access layer for loans and funding sources"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session
from lending_engine.infrastructure.database.models import Client, FundingSource, Loan, LoanStatusEvent
from lending_engine.domain.exceptions import (
    ConcurrentMutationConflictError,
    InsufficientFundsError,
    InvalidInputError,
    MissingFundingSourceError,
)
from lending_engine.domain import models as domain

logger = logging.getLogger(__name__)

# Columns a transition may stamp besides status
WRITABLE_FIELDS = frozenset(
    {"approved_date", "disbursement_date", "payment_source_id", "rejection_reason", "rejected_date"}
)


def _to_client(row: Client) -> domain.ClientRecord:
    return domain.ClientRecord(
        id=row.id,
        name=row.name,
        date_of_birth=row.date_of_birth,
        has_guarantor=row.has_guarantor,
        has_collateral=row.has_collateral,
    )


def _to_loan(row: Loan) -> domain.LoanRecord:
    return domain.LoanRecord(
        id=row.id,
        loan_number=row.loan_number,
        client_id=row.client_id,
        client_name=row.client.name if row.client else "",
        principal_amount=row.principal_amount,
        interest_rate=row.interest_rate,
        interest_method=row.interest_method,
        tenor=row.tenor,
        repayment_frequency=row.repayment_frequency,
        status=row.status,
        approved_date=row.approved_date,
        disbursement_date=row.disbursement_date,
        rejected_date=row.rejected_date,
        rejection_reason=row.rejection_reason,
        payment_source_id=row.payment_source_id,
        has_guarantor=row.has_guarantor,
        has_collateral=row.has_collateral,
        credit_score=row.credit_score,
        loan_product_id=row.loan_product_id,
    )


def _json_safe(fields: Dict[str, object]) -> Dict[str, object]:
    return {key: value.isoformat() if isinstance(value, date) else value for key, value in fields.items()}


class LoanRepository:
    """Repository for loans and their clients"""

    def __init__(self, db: Session):
        self.db = db

    def read_loans(self) -> List[domain.LoanRecord]:
        """All loans, oldest first; rows with unmappable terms are skipped and logged"""
        loans = []
        for row in self.db.query(Loan).order_by(Loan.created_at, Loan.id).all():
            try:
                loans.append(_to_loan(row))
            except InvalidInputError as e:
                logger.warning("Skipping loan %s: %s", row.id, e, extra={"loan_id": row.id})
        return loans

    def read_clients(self) -> Dict[str, domain.ClientRecord]:
        return {row.id: _to_client(row) for row in self.db.query(Client).all()}

    def get_loan(self, loan_id: str) -> Optional[domain.LoanRecord]:
        row = self.db.query(Loan).filter(Loan.id == loan_id).first()
        return _to_loan(row) if row else None

    def get_client(self, client_id: str) -> Optional[domain.ClientRecord]:
        row = self.db.query(Client).filter(Client.id == client_id).first()
        return _to_client(row) if row else None

    def write_loan_status(
        self,
        loan_id: str,
        expected_status: domain.LoanStatus,
        new_status: domain.LoanStatus,
        fields: Dict[str, object],
    ) -> None:
        """
        Compare-and-swap the status and stamp transition fields.

        The UPDATE only matches while the stored status still equals
        expected_status (case-insensitive, stored data is mixed case), so two
        concurrent writers cannot both win.

        Raises:
            ConcurrentMutationConflictError: status changed since it was read
        """
        values = {key: value for key, value in fields.items() if key in WRITABLE_FIELDS}
        values["status"] = new_status.value

        result = self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id, func.lower(Loan.status) == expected_status.value.lower())
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise ConcurrentMutationConflictError(loan_id, expected_status.value)

        self.db.add(
            LoanStatusEvent(
                loan_id=loan_id,
                from_status=expected_status.value,
                to_status=new_status.value,
                fields=_json_safe(fields),
            )
        )
        self.db.flush()  # Surface constraint errors before the ledger is touched

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()


class FundingSourceRepository:
    """Funding ledger backed by the loan database, sharing its transaction"""

    def __init__(self, db: Session):
        self.db = db

    def list_funding_sources(self, status: str = "Active") -> List[domain.FundingSource]:
        """Sources with the given status; a missing status counts as active"""
        query = self.db.query(FundingSource)
        if status:
            condition = func.lower(FundingSource.status) == status.lower()
            if status.lower() == "active":
                condition = or_(condition, FundingSource.status.is_(None), FundingSource.status == "")
            query = query.filter(condition)
        return [
            domain.FundingSource(
                id=row.id,
                name=row.name,
                balance=row.balance,
                account_type=row.account_type,
                status=row.status,
            )
            for row in query.order_by(FundingSource.name).all()
        ]

    def debit(self, source_id: str, amount: Decimal) -> None:
        """Debit the source unless that would leave it at zero or below"""
        result = self.db.execute(
            update(FundingSource)
            .where(FundingSource.id == source_id, FundingSource.balance > amount)
            .values(balance=FundingSource.balance - amount)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            exists = self.db.query(FundingSource.id).filter(FundingSource.id == source_id).first()
            if exists is None:
                raise MissingFundingSourceError(f"Funding source {source_id} not found")
            raise InsufficientFundsError(f"Funding source {source_id} cannot cover {amount}")
        self.db.flush()
