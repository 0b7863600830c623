"""Ledger engine - balance derivation and due-date rollforward for flat-interest loans"""

import math
from dataclasses import fields, replace
from datetime import date, datetime
from typing import Iterable, Optional

from loan_tracker.domain.exceptions import ValidationError
from loan_tracker.domain.models import (
    AdvancePayment,
    InterestPeriod,
    Loan,
    LoanEdit,
    LoanTerms,
    PaymentRecord,
    PenaltyRecord,
)
from loan_tracker.utils.date_utils import add_months, utc_now

MAX_PAYMENT_AMOUNT = 999_999_999
DEFAULT_PENALTY_REASON = "Penalty"


def coerce_amount(value: object) -> float:
    """Lenient numeric coercion: absent, malformed or non-finite input becomes 0"""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def validate_payment_amount(amount: object) -> float:
    """
    Strict validation for payment amounts, the only numeric input that is not coerced.

    Raises:
        ValidationError: amount is non-numeric, NaN, not positive, or above MAX_PAYMENT_AMOUNT
    """
    if isinstance(amount, bool):
        raise ValidationError("Payment amount must be a valid number.")
    try:
        value = float(amount)
    except (TypeError, ValueError) as e:
        raise ValidationError("Payment amount must be a valid number.") from e

    if math.isnan(value):
        raise ValidationError("Payment amount must be a valid number.")
    if value <= 0:
        raise ValidationError("Payment amount must be greater than zero.")
    if value > MAX_PAYMENT_AMOUNT:
        raise ValidationError("Payment amount is too large.")
    return value


def total_interest(
    principal: float,
    interest_rate: float,
    term_months: int,
    interest_period: InterestPeriod | str = InterestPeriod.MONTHLY,
) -> float:
    """
    Flat interest over the whole term, computed once from the original principal.

    A zero/negative principal or term returns the principal itself rather than 0.
    Callers add the result as interest, so a zero-term loan owes its principal twice.
    Existing balances depend on this, keep it.

    Example:
        10000 at 5% monthly for 12 months -> 10000 * 0.05 * 12 = 6000
        1000 at 12% annually for 6 months -> 1000 * 0.01 * 6 = 60
    """
    if principal <= 0 or term_months <= 0:
        return principal

    if InterestPeriod.parse(interest_period) == InterestPeriod.ANNUALLY:
        monthly_rate = interest_rate / 12
    else:
        monthly_rate = interest_rate

    monthly_interest = principal * (monthly_rate / 100)
    return monthly_interest * term_months


def initial_balance(
    principal: float,
    interest_rate: float,
    term_months: int,
    interest_period: InterestPeriod | str = InterestPeriod.MONTHLY,
) -> float:
    """Balance of a new loan: no payments or penalties yet"""
    return principal + total_interest(principal, interest_rate, term_months, interest_period)


def total_payments(payments: Iterable[PaymentRecord]) -> float:
    return sum((p.amount for p in payments), 0.0)


def total_penalties(penalties: Iterable[PenaltyRecord]) -> float:
    return sum((p.amount for p in penalties), 0.0)


def derive_balance(terms: LoanTerms, payments_total: float, penalties_total: float) -> float:
    """principal + interest + penalties - payments, floored at zero"""
    owed = (
        terms.principal
        + total_interest(terms.principal, terms.interest_rate, terms.term_months, terms.interest_period)
        + penalties_total
        - payments_total
    )
    return max(owed, 0.0)


def compute_balance(loan: Loan) -> float:
    """The value remaining_balance must always hold for this loan"""
    return derive_balance(loan.terms, total_payments(loan.payments), total_penalties(loan.penalties))


def open_loan(
    name: str,
    contact: str,
    address: str,
    terms: LoanTerms,
    monthly_payment: float = 0.0,
    next_due_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Loan:
    """
    Build a new loan with its initial balance.

    Raises:
        ValidationError: name, contact or address is missing
    """
    if not name or not contact or not address:
        raise ValidationError("Missing required borrower fields.")

    return Loan(
        name=name,
        contact=contact,
        address=address,
        principal=terms.principal,
        term_months=terms.term_months,
        interest_rate=terms.interest_rate,
        interest_period=terms.interest_period,
        monthly_payment=monthly_payment,
        next_due_date=next_due_date,
        total_penalties=0.0,
        remaining_balance=initial_balance(
            terms.principal, terms.interest_rate, terms.term_months, terms.interest_period
        ),
        created_at=now or utc_now(),
    )


def compute_rollforward(
    amount: float,
    monthly_payment: float,
    next_due_date: Optional[date],
    paid_at: datetime,
) -> Optional[AdvancePayment]:
    """
    Advance the due date by every full installment the payment covers.

    450 against a 200 installment covers floor(450 / 200) = 2 months.
    Returns None when nothing moves (no installment size, no due date,
    or a payment smaller than one installment). A due date pushed past the
    last representable date is clamped to date.max.
    """
    if monthly_payment <= 0 or next_due_date is None or amount <= 0:
        return None

    months_covered = math.floor(amount / monthly_payment)
    if months_covered < 1:
        return None

    try:
        new_due_date = add_months(next_due_date, months_covered)
    except (ValueError, OverflowError):
        new_due_date = date.max

    return AdvancePayment(
        amount=amount,
        months_covered=months_covered,
        date=paid_at,
        original_due_date=next_due_date,
        new_due_date=new_due_date,
    )


def record_payment(
    loan: Loan,
    amount: object,
    paid_at: Optional[datetime] = None,
    note: Optional[str] = None,
    advance_due_date: bool = False,
    now: Optional[datetime] = None,
) -> Loan:
    """
    Append a payment and return the updated loan.

    Raises:
        ValidationError: amount fails validate_payment_amount; the loan is untouched
    """
    value = validate_payment_amount(amount)
    payment = PaymentRecord(amount=value, date=paid_at or now or utc_now(), note=note or "")
    payments = [*loan.payments, payment]

    updated = replace(
        loan,
        payments=payments,
        remaining_balance=derive_balance(
            loan.terms, total_payments(payments), total_penalties(loan.penalties)
        ),
    )

    if advance_due_date:
        advance = compute_rollforward(value, loan.monthly_payment, loan.next_due_date, payment.date)
        if advance is not None:
            updated = replace(updated, next_due_date=advance.new_due_date, last_advance_payment=advance)

    return updated


def record_penalty(
    loan: Loan,
    amount: object,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Loan:
    """
    Append a penalty and return the updated loan.

    The amount is coerced, not validated: zero and negative penalties are accepted.
    The stored balance is floored at zero like every other path; total_penalties is not.
    """
    penalty = PenaltyRecord(
        amount=coerce_amount(amount),
        date=now or utc_now(),
        reason=reason or DEFAULT_PENALTY_REASON,
    )
    penalties = [*loan.penalties, penalty]
    penalties_total = total_penalties(penalties)

    return replace(
        loan,
        penalties=penalties,
        total_penalties=penalties_total,
        remaining_balance=derive_balance(loan.terms, total_payments(loan.payments), penalties_total),
    )


def recompute_on_term_edit(loan: Loan, edit: LoanEdit) -> Loan:
    """
    Merge the supplied fields over the loan; recompute the balance if any interest term changed.

    Payment and penalty history is never rewritten.
    """
    changes = {f.name: getattr(edit, f.name) for f in fields(edit) if getattr(edit, f.name) is not None}
    updated = replace(loan, **changes)

    if edit.changes_terms:
        updated = replace(updated, remaining_balance=compute_balance(updated))

    return updated
