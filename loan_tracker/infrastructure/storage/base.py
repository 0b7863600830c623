"""Storage capability interface shared by every loan backend"""

from abc import ABC, abstractmethod
from typing import Callable, List

from loan_tracker.domain.models import Loan

LoanMutation = Callable[[Loan], Loan]


class StorageBackend(ABC):
    """
    Persistence for loans.

    apply() is the only way to change an existing loan: the backend reads the
    current loan, hands it to the mutation and stores the result as one atomic
    step per loan, so two concurrent payments cannot both compute from the same
    stale balance.
    """

    name: str = "abstract"

    @abstractmethod
    def list_loans(self) -> List[Loan]:
        """All loans, newest created_at first"""

    @abstractmethod
    def get_loan(self, loan_id: str) -> Loan:
        """Single-loan read for non-mutating callers; raises LoanNotFoundError when absent"""

    @abstractmethod
    def create_loan(self, loan: Loan) -> Loan:
        """Store a new loan and return it with its assigned id"""

    @abstractmethod
    def apply(self, loan_id: str, mutation: LoanMutation) -> Loan:
        """Atomically read, mutate and store one loan; raises LoanNotFoundError when absent"""

    @abstractmethod
    def delete_loan(self, loan_id: str) -> None:
        """Raises LoanNotFoundError when absent"""

    @abstractmethod
    def ping(self) -> bool:
        """True when the backend can serve requests"""
