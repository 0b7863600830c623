"""SQLAlchemy ORM models for loans and their payment/penalty history"""

import uuid
from sqlalchemy import Column, String, Float, DateTime, Date, Integer, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class LoanRow(Base):
    """Borrower account with denormalized running balance"""

    __tablename__ = "loan"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    contact = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    principal = Column(Float, nullable=False, default=0.0)
    term_months = Column(Integer, nullable=False, default=0)
    interest_rate = Column(Float, nullable=False, default=0.0)
    interest_period = Column(String(16), nullable=False, default="monthly")
    monthly_payment = Column(Float, nullable=False, default=0.0)
    next_due_date = Column(Date, nullable=True)
    total_penalties = Column(Float, nullable=False, default=0.0)
    remaining_balance = Column(Float, nullable=False, default=0.0)
    last_advance_payment = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    payments = relationship(
        "PaymentRow",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="PaymentRow.seq",
    )
    penalties = relationship(
        "PenaltyRow",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="PenaltyRow.seq",
    )


class PaymentRow(Base):
    """Append-only payment history; seq preserves recording order"""

    __tablename__ = "loan_payment"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    note = Column(Text, nullable=False, default="")

    loan = relationship("LoanRow", back_populates="payments")


class PenaltyRow(Base):
    """Append-only penalty history; seq preserves recording order"""

    __tablename__ = "loan_penalty"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False)
    reason = Column(Text, nullable=False, default="Penalty")
    charged_at = Column(DateTime(timezone=True), nullable=False)

    loan = relationship("LoanRow", back_populates="penalties")
