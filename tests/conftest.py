"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import copy
import dataclasses
import pytest
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from lending_engine.api.main import create_app
from lending_engine.infrastructure.database import models as orm
from lending_engine.infrastructure.database.models import Base
from lending_engine.infrastructure.database.session import get_db
from lending_engine.domain.exceptions import ConcurrentMutationConflictError
from lending_engine.domain.models import ClientRecord, FundingSource, LoanRecord, LoanStatus


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date(2024, 3, 15)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def seeded_db(db: Session) -> Session:
    """
    Portfolio covering every phase:
    - loan_pending, loan_review (phase 1)
    - loan_need (phase 2)
    - loan_approved (phase 3), 150k principal
    - loan_active (phase 4), loan_rejected (no phase)
    Funding: 'acc_main' with 1,000,000 and an inactive 'acc_closed'.
    """
    db.add_all(
        [
            orm.Client(id="cli_young", name="Amina Otieno", date_of_birth=date(2002, 6, 1)),
            orm.Client(
                id="cli_secured",
                name="Joseph Mwangi",
                date_of_birth=date(1984, 2, 10),
                has_guarantor=True,
                has_collateral=True,
            ),
            orm.FundingSource(id="acc_main", name="Equity Operating", balance=Decimal("1000000")),
            orm.FundingSource(id="acc_closed", name="Old Till", balance=Decimal("5000000"), status="Closed"),
        ]
    )
    db.flush()
    rows = [
        ("loan_pending", "LN-001", "cli_young", 15000, 12, 6, "Pending"),
        ("loan_review", "LN-002", "cli_secured", 40000, 14, 12, "under review"),
        ("loan_need", "LN-003", "cli_young", 60000, 18, 18, "Need Approval"),
        ("loan_approved", "LN-004", "cli_secured", 150000, 12, 12, "Approved"),
        ("loan_active", "LN-005", "cli_secured", 30000, 10, 6, "Active"),
        ("loan_rejected", "LN-006", "cli_young", 25000, 22, 30, "Rejected"),
    ]
    for loan_id, number, client_id, principal, rate, tenor, status in rows:
        db.add(
            orm.Loan(
                id=loan_id,
                loan_number=number,
                client_id=client_id,
                principal_amount=Decimal(principal),
                interest_rate=Decimal(rate),
                interest_method="Reducing Balance" if loan_id == "loan_approved" else "Flat",
                tenor=tenor,
                status=status,
            )
        )
    db.commit()
    return db


class InMemoryLoanStore:
    """LoanStore that stages writes until commit, with optional simulated competing writers"""

    def __init__(self, loans: List[LoanRecord], clients: Optional[Dict[str, ClientRecord]] = None):
        self.loans = {loan.id: loan for loan in loans}
        self.clients = clients or {}
        self.staged: Dict[str, LoanRecord] = {}
        self.concurrent_status: Dict[str, LoanStatus] = {}
        self.commits = 0
        self.rollbacks = 0
        self.commit_error: Optional[Exception] = None

    def read_loans(self) -> List[LoanRecord]:
        return [copy.deepcopy(loan) for loan in self.loans.values()]

    def read_clients(self) -> Dict[str, ClientRecord]:
        return dict(self.clients)

    def get_loan(self, loan_id: str) -> Optional[LoanRecord]:
        loan = self.loans.get(loan_id)
        return copy.deepcopy(loan) if loan else None

    def write_loan_status(self, loan_id, expected_status, new_status, fields) -> None:
        if loan_id in self.concurrent_status:
            # Another writer got there between our read and this write
            self.loans[loan_id].status = self.concurrent_status.pop(loan_id)
        current = self.staged.get(loan_id) or self.loans[loan_id]
        if current.status is not expected_status:
            raise ConcurrentMutationConflictError(loan_id, expected_status.value)
        self.staged[loan_id] = dataclasses.replace(current, status=new_status, **fields)

    def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.loans.update(self.staged)
        self.staged.clear()
        self.commits += 1

    def rollback(self) -> None:
        self.staged.clear()
        self.rollbacks += 1


class InMemoryLedger:
    """FundingLedger recording debits; set fail_with to make debit raise"""

    def __init__(self, sources: List[FundingSource]):
        self.sources = {source.id: source for source in sources}
        self.debits: List[tuple] = []
        self.fail_with: Optional[Exception] = None

    def list_funding_sources(self, status: str = "Active") -> List[FundingSource]:
        return [source for source in self.sources.values() if source.is_active]

    def debit(self, source_id: str, amount: Decimal) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sources[source_id].balance -= amount
        self.debits.append((source_id, amount))


@pytest.fixture
def make_loan() -> Callable[..., LoanRecord]:
    """Factory for loans with sensible defaults"""

    def _make(loan_id: str = "loan_1", **overrides) -> LoanRecord:
        values = dict(
            id=loan_id,
            client_id="cli_1",
            principal_amount=Decimal("50000"),
            interest_rate=Decimal("12"),
            tenor=12,
        )
        values.update(overrides)
        return LoanRecord(**values)

    return _make


@pytest.fixture
def make_store() -> Callable[..., InMemoryLoanStore]:
    return InMemoryLoanStore


@pytest.fixture
def make_ledger() -> Callable[..., InMemoryLedger]:
    return InMemoryLedger


@pytest.fixture
def main_account() -> FundingSource:
    return FundingSource(id="acc_main", name="Equity Operating", balance=Decimal("1000000"))
