"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from loan_tracker.domain.ledger import coerce_amount
from loan_tracker.domain.models import AdvancePayment, InterestPeriod, Loan, LoanEdit, LoanTerms


def _coerce_term(value: Any) -> int:
    return int(coerce_amount(value))


def _blank_to_none(value: Any) -> Any:
    return value or None


# Absent or malformed numbers become 0 instead of failing validation
LenientFloat = Annotated[float, BeforeValidator(coerce_amount)]
LenientInt = Annotated[int, BeforeValidator(_coerce_term)]
OptionalDate = Annotated[Optional[date], BeforeValidator(_blank_to_none)]
OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Requests


class CreateLoanRequest(CamelModel):
    """Request body for POST /api/loans"""

    name: OptionalText = None
    contact: OptionalText = None
    address: OptionalText = None
    loan_amount: LenientFloat = Field(0.0, alias="loanAmount")
    term: LenientInt = 0
    interest_rate: LenientFloat = Field(0.0, alias="interestRate")
    interest_type: OptionalText = Field(None, alias="interestType")
    next_due_date: OptionalDate = Field(None, alias="nextDueDate")
    monthly_payment: LenientFloat = Field(0.0, alias="monthlyPayment")


class PaymentBody(CamelModel):
    amount: Any = None  # validated strictly by the ledger, not coerced
    paid_at: Optional[datetime] = Field(None, alias="date")
    note: Optional[str] = None
    update_due_date: bool = Field(False, alias="updateDueDate")


class PenaltyBody(CamelModel):
    amount: LenientFloat = 0.0
    reason: OptionalText = None


class BorrowerUpdateBody(CamelModel):
    name: OptionalText = None
    contact: OptionalText = None
    address: OptionalText = None
    loan_amount: Optional[LenientFloat] = Field(None, alias="loanAmount")
    term: Optional[LenientInt] = None
    interest_rate: Optional[LenientFloat] = Field(None, alias="interestRate")
    interest_type: OptionalText = Field(None, alias="interestType")
    next_due_date: OptionalDate = Field(None, alias="nextDueDate")
    monthly_payment: Optional[LenientFloat] = Field(None, alias="monthlyPayment")


class UpdateLoanRequest(CamelModel):
    """Request body for PUT /api/loans; exactly one intent is acted on"""

    payment: Optional[PaymentBody] = None
    penalty: Optional[PenaltyBody] = None
    borrower_update: Optional[BorrowerUpdateBody] = Field(None, alias="borrowerUpdate")
    update_due_date: Optional[bool] = Field(None, alias="updateDueDate")


# Intents: the tagged union request bodies are reduced to before reaching the ledger


class CreateLoan(BaseModel):
    kind: Literal["create_loan"] = "create_loan"
    name: Optional[str]
    contact: Optional[str]
    address: Optional[str]
    terms: LoanTerms
    monthly_payment: float = 0.0
    next_due_date: Optional[date] = None


class RecordPayment(BaseModel):
    kind: Literal["record_payment"] = "record_payment"
    amount: Any
    paid_at: Optional[datetime] = None
    note: Optional[str] = None
    advance_due_date: bool = False


class RecordPenalty(BaseModel):
    kind: Literal["record_penalty"] = "record_penalty"
    amount: float
    reason: Optional[str] = None


class EditTerms(BaseModel):
    kind: Literal["edit_terms"] = "edit_terms"
    edit: LoanEdit


# What a PUT body reduces to; "kind" tags each variant
UpdateIntent = Union[RecordPayment, RecordPenalty, EditTerms]


def create_intent(body: CreateLoanRequest) -> CreateLoan:
    return CreateLoan(
        name=body.name,
        contact=body.contact,
        address=body.address,
        terms=LoanTerms(
            principal=body.loan_amount,
            term_months=body.term,
            interest_rate=body.interest_rate,
            interest_period=InterestPeriod.parse(body.interest_type),
        ),
        monthly_payment=body.monthly_payment,
        next_due_date=body.next_due_date,
    )


def update_intent(body: UpdateLoanRequest) -> Optional[UpdateIntent]:
    """
    Pick the intent of a PUT body.

    Precedence: payment, then penalty, then borrowerUpdate. The due-date flag is
    accepted at the top level or inside the payment object.
    Returns None when no recognized key is present.
    """
    if body.payment is not None:
        return RecordPayment(
            amount=body.payment.amount,
            paid_at=body.payment.paid_at,
            note=body.payment.note,
            advance_due_date=bool(body.update_due_date or body.payment.update_due_date),
        )

    if body.penalty is not None:
        return RecordPenalty(amount=body.penalty.amount, reason=body.penalty.reason)

    if body.borrower_update is not None:
        update = body.borrower_update
        return EditTerms(
            edit=LoanEdit(
                name=update.name,
                contact=update.contact,
                address=update.address,
                principal=update.loan_amount,
                term_months=update.term,
                interest_rate=update.interest_rate,
                interest_period=InterestPeriod.parse(update.interest_type) if update.interest_type else None,
                next_due_date=update.next_due_date,
                monthly_payment=update.monthly_payment,
            )
        )

    return None


# Responses


class PaymentSchema(CamelModel):
    amount: float
    date: datetime
    note: str


class PenaltySchema(CamelModel):
    amount: float
    reason: str
    date: datetime
    type: str = "penalty"


class AdvancePaymentSchema(CamelModel):
    amount: float
    months_covered: int = Field(alias="monthsCovered")
    date: datetime
    original_due_date: date = Field(alias="originalDueDate")
    new_due_date: date = Field(alias="newDueDate")

    @classmethod
    def from_domain(cls, advance: AdvancePayment) -> "AdvancePaymentSchema":
        return cls(
            amount=advance.amount,
            months_covered=advance.months_covered,
            date=advance.date,
            original_due_date=advance.original_due_date,
            new_due_date=advance.new_due_date,
        )


class LoanResponse(CamelModel):
    """Loan as returned by /api/loans"""

    id: str = Field(alias="_id")
    name: str
    contact: str
    address: str
    loan_amount: float = Field(alias="loanAmount")
    term: int
    interest_rate: float = Field(alias="interestRate")
    interest_type: str = Field(alias="interestType")
    next_due_date: Optional[date] = Field(None, alias="nextDueDate")
    monthly_payment: float = Field(alias="monthlyPayment")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    payments: List[PaymentSchema]
    penalties: List[PenaltySchema]
    total_penalties: float = Field(alias="totalPenalties")
    remaining_balance: float = Field(alias="remainingBalance")
    last_advance_payment: Optional[AdvancePaymentSchema] = Field(None, alias="lastAdvancePayment")

    @classmethod
    def from_domain(cls, loan: Loan) -> "LoanResponse":
        return cls(
            id=loan.id,
            name=loan.name,
            contact=loan.contact,
            address=loan.address,
            loan_amount=loan.principal,
            term=loan.term_months,
            interest_rate=loan.interest_rate,
            interest_type=loan.interest_period.value,
            next_due_date=loan.next_due_date,
            monthly_payment=loan.monthly_payment,
            created_at=loan.created_at,
            payments=[PaymentSchema(amount=p.amount, date=p.date, note=p.note) for p in loan.payments],
            penalties=[PenaltySchema(amount=p.amount, reason=p.reason, date=p.date) for p in loan.penalties],
            total_penalties=loan.total_penalties,
            remaining_balance=loan.remaining_balance,
            last_advance_payment=(
                AdvancePaymentSchema.from_domain(loan.last_advance_payment)
                if loan.last_advance_payment
                else None
            ),
        )


class MutationResponse(CamelModel):
    """Response for PUT /api/loans"""

    message: str
    remaining_balance: float = Field(alias="remainingBalance")
    total_penalties: Optional[float] = Field(None, alias="totalPenalties")
    next_due_date: Optional[date] = Field(None, alias="nextDueDate")
    last_advance_payment: Optional[AdvancePaymentSchema] = Field(None, alias="lastAdvancePayment")


class MessageResponse(BaseModel):
    message: str
