"""Data access layer for loans"""

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional
from sqlalchemy.orm import Session
from loan_tracker.infrastructure.database.models import LoanRow, PaymentRow, PenaltyRow
from loan_tracker.domain.models import AdvancePayment, InterestPeriod, Loan, PaymentRecord, PenaltyRecord


def _parse_id(loan_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(loan_id))
    except ValueError:
        return None


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _advance_to_json(advance: Optional[AdvancePayment]) -> Optional[dict]:
    if advance is None:
        return None
    return {
        "amount": advance.amount,
        "months_covered": advance.months_covered,
        "date": advance.date.isoformat(),
        "original_due_date": advance.original_due_date.isoformat(),
        "new_due_date": advance.new_due_date.isoformat(),
    }


def _advance_from_json(data: Optional[dict]) -> Optional[AdvancePayment]:
    if not data:
        return None
    return AdvancePayment(
        amount=data["amount"],
        months_covered=data["months_covered"],
        date=datetime.fromisoformat(data["date"]),
        original_due_date=date.fromisoformat(data["original_due_date"]),
        new_due_date=date.fromisoformat(data["new_due_date"]),
    )


def to_domain(row: LoanRow) -> Loan:
    """Map ORM row (with history) to the domain Loan"""
    return Loan(
        id=str(row.id),
        name=row.name,
        contact=row.contact,
        address=row.address,
        principal=row.principal,
        term_months=row.term_months,
        interest_rate=row.interest_rate,
        interest_period=InterestPeriod.parse(row.interest_period),
        monthly_payment=row.monthly_payment,
        next_due_date=row.next_due_date,
        payments=[
            PaymentRecord(amount=p.amount, date=_aware(p.paid_at), note=p.note)
            for p in row.payments
        ],
        penalties=[
            PenaltyRecord(amount=p.amount, date=_aware(p.charged_at), reason=p.reason)
            for p in row.penalties
        ],
        total_penalties=row.total_penalties,
        remaining_balance=row.remaining_balance,
        last_advance_payment=_advance_from_json(row.last_advance_payment),
        created_at=_aware(row.created_at) if row.created_at else None,
    )


class LoanRepository:
    """Repository for loans and their append-only history"""

    def __init__(self, db: Session):
        self.db = db

    def list_loans(self) -> List[LoanRow]:
        """All loans, newest first"""
        return self.db.query(LoanRow).order_by(LoanRow.created_at.desc()).all()

    def get_loan(self, loan_id: str, for_update: bool = False) -> Optional[LoanRow]:
        """Fetch loan; for_update takes a row lock until the transaction ends"""
        parsed = _parse_id(loan_id)
        if parsed is None:
            return None

        query = self.db.query(LoanRow).filter(LoanRow.id == parsed)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def create_loan(self, loan: Loan) -> LoanRow:
        """Persist a new loan"""
        db_loan = LoanRow(
            name=loan.name,
            contact=loan.contact,
            address=loan.address,
            created_at=loan.created_at,
        )
        self._write_scalars(db_loan, loan)
        self.db.add(db_loan)
        self.db.flush()  # Get ID without committing
        return db_loan

    def save_loan(self, db_loan: LoanRow, loan: Loan) -> LoanRow:
        """
        Write updated scalars and append any history the row does not have yet.

        Existing payment/penalty rows are never modified.
        """
        db_loan.name = loan.name
        db_loan.contact = loan.contact
        db_loan.address = loan.address
        self._write_scalars(db_loan, loan)

        for seq, payment in enumerate(loan.payments[len(db_loan.payments):], start=len(db_loan.payments)):
            db_loan.payments.append(
                PaymentRow(seq=seq, amount=payment.amount, paid_at=payment.date, note=payment.note)
            )
        for seq, penalty in enumerate(loan.penalties[len(db_loan.penalties):], start=len(db_loan.penalties)):
            db_loan.penalties.append(
                PenaltyRow(seq=seq, amount=penalty.amount, reason=penalty.reason, charged_at=penalty.date)
            )

        self.db.flush()
        return db_loan

    def delete_loan(self, loan_id: str) -> bool:
        db_loan = self.get_loan(loan_id)
        if db_loan is None:
            return False
        self.db.delete(db_loan)
        self.db.flush()
        return True

    @staticmethod
    def _write_scalars(db_loan: LoanRow, loan: Loan) -> None:
        db_loan.principal = loan.principal
        db_loan.term_months = loan.term_months
        db_loan.interest_rate = loan.interest_rate
        db_loan.interest_period = loan.interest_period.value
        db_loan.monthly_payment = loan.monthly_payment
        db_loan.next_due_date = loan.next_due_date
        db_loan.total_penalties = loan.total_penalties
        db_loan.remaining_balance = loan.remaining_balance
        db_loan.last_advance_payment = _advance_to_json(loan.last_advance_payment)
