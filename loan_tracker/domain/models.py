"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class InterestPeriod(str, Enum):
    """Whether the nominal rate is already monthly or must be divided by 12"""

    MONTHLY = "monthly"
    ANNUALLY = "annually"

    @classmethod
    def parse(cls, value: object) -> "InterestPeriod":
        """Anything other than "annually" is treated as a monthly rate"""
        if isinstance(value, cls):
            return value
        return cls.ANNUALLY if value == cls.ANNUALLY.value else cls.MONTHLY


@dataclass(frozen=True)
class PaymentRecord:
    """Single payment recorded against a loan"""

    amount: float
    date: datetime
    note: str = ""


@dataclass(frozen=True)
class PenaltyRecord:
    """Single penalty charged to a loan"""

    amount: float
    date: datetime
    reason: str = "Penalty"


@dataclass(frozen=True)
class AdvancePayment:
    """Snapshot of the most recent due-date rollforward, for display only"""

    amount: float
    months_covered: int
    date: datetime
    original_due_date: date
    new_due_date: date


@dataclass(frozen=True)
class LoanTerms:
    """Scalar inputs to the interest formula"""

    principal: float = 0.0
    term_months: int = 0
    interest_rate: float = 0.0
    interest_period: InterestPeriod = InterestPeriod.MONTHLY


@dataclass
class Loan:
    """One borrower's credit account"""

    name: str
    contact: str
    address: str
    principal: float = 0.0
    term_months: int = 0
    interest_rate: float = 0.0
    interest_period: InterestPeriod = InterestPeriod.MONTHLY
    monthly_payment: float = 0.0
    next_due_date: Optional[date] = None
    payments: List[PaymentRecord] = field(default_factory=list)
    penalties: List[PenaltyRecord] = field(default_factory=list)
    total_penalties: float = 0.0
    remaining_balance: float = 0.0
    last_advance_payment: Optional[AdvancePayment] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def terms(self) -> LoanTerms:
        return LoanTerms(
            principal=self.principal,
            term_months=self.term_months,
            interest_rate=self.interest_rate,
            interest_period=self.interest_period,
        )

    @property
    def is_settled(self) -> bool:
        """Settlement is derived from the balance, never enforced as a gate"""
        return self.remaining_balance <= 0


@dataclass(frozen=True)
class LoanEdit:
    """Partial update of loan scalars; None keeps the current value"""

    name: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None
    principal: Optional[float] = None
    term_months: Optional[int] = None
    interest_rate: Optional[float] = None
    interest_period: Optional[InterestPeriod] = None
    next_due_date: Optional[date] = None
    monthly_payment: Optional[float] = None

    @property
    def changes_terms(self) -> bool:
        return any(
            value is not None
            for value in (self.principal, self.term_months, self.interest_rate, self.interest_period)
        )
