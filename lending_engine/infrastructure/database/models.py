"""SQLAlchemy ORM models for loans, clients and funding sources"""

import uuid
from sqlalchemy import Column, String, Boolean, Date, DateTime, Integer, Numeric, ForeignKey, Text, JSON
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class Client(Base):
    """Borrower, owned by client management; read-only here"""

    __tablename__ = "client"

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(Text, nullable=False, default="")
    date_of_birth = Column(Date, nullable=True)
    has_guarantor = Column(Boolean, nullable=False, default=False)
    has_collateral = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loans = relationship("Loan", back_populates="client")


class Loan(Base):
    """Loan application / live loan"""

    __tablename__ = "loan"

    id = Column(String(64), primary_key=True, default=_new_id)
    loan_number = Column(Text, nullable=False, default="")
    client_id = Column(String(64), ForeignKey("client.id"), nullable=False, index=True)
    principal_amount = Column(Numeric(18, 2), nullable=False)
    interest_rate = Column(Numeric(7, 4), nullable=False)
    interest_method = Column(Text, nullable=False, default="Flat")
    tenor = Column(Integer, nullable=False)
    repayment_frequency = Column(Text, nullable=False, default="Monthly")
    status = Column(Text, nullable=False, default="Pending", index=True)
    approved_date = Column(Date, nullable=True)
    disbursement_date = Column(Date, nullable=True)
    rejected_date = Column(Date, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    # Id in whichever ledger is configured, so no foreign key to funding_source
    payment_source_id = Column(String(64), nullable=True)
    has_guarantor = Column(Boolean, nullable=False, default=False)
    has_collateral = Column(Boolean, nullable=False, default=False)
    credit_score = Column(Integer, nullable=True)
    loan_product_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    client = relationship("Client", back_populates="loans")
    events = relationship("LoanStatusEvent", back_populates="loan", cascade="all, delete-orphan")


class FundingSource(Base):
    """Bank, cash or mobile-money account used for disbursements"""

    __tablename__ = "funding_source"

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    account_type = Column(Text, nullable=False, default="bank")
    balance = Column(Numeric(18, 2), nullable=False, default=0)
    status = Column(Text, nullable=True, default="Active")


class LoanStatusEvent(Base):
    """Audit trail of applied status transitions"""

    __tablename__ = "loan_status_event"

    id = Column(String(64), primary_key=True, default=_new_id)
    loan_id = Column(String(64), ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(Text, nullable=False)
    to_status = Column(Text, nullable=False)
    fields = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan = relationship("Loan", back_populates="events")
