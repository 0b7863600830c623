"""/api/loans - borrower loan CRUD over the ledger engine"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from loan_tracker.api.dependencies import get_request_id, get_storage, get_storage_selector
from loan_tracker.api.schemas import (
    AdvancePaymentSchema,
    CreateLoanRequest,
    LoanResponse,
    MessageResponse,
    MutationResponse,
    RecordPayment,
    RecordPenalty,
    UpdateIntent,
    UpdateLoanRequest,
    create_intent,
    update_intent,
)
from loan_tracker.domain import ledger
from loan_tracker.domain.exceptions import LoanNotFoundError, StorageUnavailableError, ValidationError
from loan_tracker.domain.models import Loan
from loan_tracker.infrastructure.observability.logging import log_ledger_event
from loan_tracker.infrastructure.observability.metrics import payment_rejection_counter, record_ledger_event
from loan_tracker.infrastructure.storage.base import LoanMutation, StorageBackend
from loan_tracker.infrastructure.storage.selector import StorageSelector

router = APIRouter()


@contextmanager
def ledger_errors(selector: StorageSelector, request_id: str) -> Iterator[None]:
    """Translate domain and storage failures into HTTP errors"""
    try:
        yield
    except HTTPException:
        raise
    except ValidationError as e:
        logging.warning(f"Rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))
    except LoanNotFoundError:
        raise HTTPException(status_code=404, detail="Borrower not found.")
    except StorageUnavailableError as e:
        selector.mark_unavailable(str(e))
        logging.error(f"Storage error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Storage unavailable")
    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal Server Error")


def require_id(loan_id: Optional[str]) -> str:
    if not loan_id:
        raise HTTPException(status_code=400, detail="Missing borrower id.")
    return loan_id


def mutation_for(intent: UpdateIntent) -> LoanMutation:
    """Bind an intent to the ledger operation that serves it"""
    if isinstance(intent, RecordPayment):
        return lambda loan: ledger.record_payment(
            loan,
            intent.amount,
            paid_at=intent.paid_at,
            note=intent.note,
            advance_due_date=intent.advance_due_date,
        )
    if isinstance(intent, RecordPenalty):
        return lambda loan: ledger.record_penalty(loan, intent.amount, reason=intent.reason)
    return lambda loan: ledger.recompute_on_term_edit(loan, intent.edit)


@router.get("/loans", response_model=List[LoanResponse])
def list_loans(
    request: Request,
    storage: StorageBackend = Depends(get_storage),
    selector: StorageSelector = Depends(get_storage_selector),
):
    """List every loan, newest first"""
    with ledger_errors(selector, get_request_id(request)):
        loans = storage.list_loans()
    return [LoanResponse.from_domain(loan) for loan in loans]


@router.post("/loans", response_model=LoanResponse, status_code=201)
def create_loan(
    body: CreateLoanRequest,
    request: Request,
    storage: StorageBackend = Depends(get_storage),
    selector: StorageSelector = Depends(get_storage_selector),
):
    """
    Create a borrower loan.

    The initial balance is principal plus flat interest over the whole term.
    """
    request_id = get_request_id(request)
    intent = create_intent(body)

    with ledger_errors(selector, request_id):
        loan = ledger.open_loan(
            name=intent.name,
            contact=intent.contact,
            address=intent.address,
            terms=intent.terms,
            monthly_payment=intent.monthly_payment,
            next_due_date=intent.next_due_date,
        )
        loan = storage.create_loan(loan)

    record_ledger_event("loan_created")
    log_ledger_event(request_id, "loan_created", loan.id, loan.remaining_balance, storage=storage.name)
    return LoanResponse.from_domain(loan)


@router.put("/loans", response_model=MutationResponse, response_model_exclude_none=True)
def update_loan(
    body: UpdateLoanRequest,
    request: Request,
    loan_id: Optional[str] = Query(None, alias="id"),
    storage: StorageBackend = Depends(get_storage),
    selector: StorageSelector = Depends(get_storage_selector),
):
    """
    Record a payment, record a penalty, or edit borrower terms.

    Flow:
    1. Reduce the body to one intent (payment > penalty > borrowerUpdate)
    2. Apply the matching ledger operation atomically against the stored loan
    3. Return the recomputed balance
    """
    request_id = get_request_id(request)
    loan_id = require_id(loan_id)

    intent = update_intent(body)
    if intent is None:
        raise HTTPException(status_code=400, detail="Invalid request.")

    previous: dict = {}

    def mutate(loan: Loan) -> Loan:
        previous["next_due_date"] = loan.next_due_date
        return mutation_for(intent)(loan)

    try:
        with ledger_errors(selector, request_id):
            loan = storage.apply(loan_id, mutate)
    except HTTPException as e:
        if isinstance(intent, RecordPayment) and e.status_code == 400:
            payment_rejection_counter.inc()
        raise

    if isinstance(intent, RecordPayment):
        advanced = loan.next_due_date != previous["next_due_date"]
        record_ledger_event("payment_recorded", advanced_due_date=advanced)
        log_ledger_event(
            request_id,
            "payment_recorded",
            loan.id,
            loan.remaining_balance,
            amount=loan.payments[-1].amount,
            advanced_due_date=advanced,
        )
        return MutationResponse(
            message="Payment added successfully.",
            remaining_balance=loan.remaining_balance,
            next_due_date=loan.next_due_date if advanced else None,
            last_advance_payment=(
                AdvancePaymentSchema.from_domain(loan.last_advance_payment) if advanced else None
            ),
        )

    if isinstance(intent, RecordPenalty):
        record_ledger_event("penalty_recorded")
        log_ledger_event(
            request_id,
            "penalty_recorded",
            loan.id,
            loan.remaining_balance,
            total_penalties=loan.total_penalties,
        )
        return MutationResponse(
            message="Penalty added successfully.",
            remaining_balance=loan.remaining_balance,
            total_penalties=loan.total_penalties,
        )

    record_ledger_event("terms_edited")
    log_ledger_event(
        request_id,
        "terms_edited",
        loan.id,
        loan.remaining_balance,
        balance_recomputed=intent.edit.changes_terms,
    )
    return MutationResponse(
        message="Borrower updated successfully.",
        remaining_balance=loan.remaining_balance,
    )


@router.delete("/loans", response_model=MessageResponse)
def delete_loan(
    request: Request,
    loan_id: Optional[str] = Query(None, alias="id"),
    storage: StorageBackend = Depends(get_storage),
    selector: StorageSelector = Depends(get_storage_selector),
):
    """Remove a loan together with its history"""
    request_id = get_request_id(request)
    loan_id = require_id(loan_id)

    with ledger_errors(selector, request_id):
        storage.delete_loan(loan_id)

    record_ledger_event("loan_deleted")
    log_ledger_event(request_id, "loan_deleted", loan_id, 0.0)
    return MessageResponse(message="Borrower deleted successfully.")
