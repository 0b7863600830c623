"""SQLAlchemy-backed loan storage"""

from contextlib import contextmanager
from typing import Iterator, List

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from loan_tracker.domain.exceptions import LoanNotFoundError, StorageUnavailableError
from loan_tracker.domain.models import Loan
from loan_tracker.infrastructure.database.models import Base
from loan_tracker.infrastructure.database.repositories import LoanRepository, to_domain
from loan_tracker.infrastructure.database.session import create_session_factory, session_scope
from loan_tracker.infrastructure.storage.base import LoanMutation, StorageBackend


class DatabaseBackend(StorageBackend):
    """Loan storage in a relational database, one transaction per operation"""

    name = "database"

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = create_session_factory(engine)
        self._schema_ready = False

    @contextmanager
    def _unit_of_work(self) -> Iterator[Session]:
        try:
            with session_scope(self.session_factory) as db:
                yield db
        except (OperationalError, InterfaceError) as e:
            raise StorageUnavailableError(f"Database unavailable: {e.orig or e}") from e

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
        except (OperationalError, InterfaceError) as e:
            raise StorageUnavailableError(f"Database unavailable: {e.orig or e}") from e

    def list_loans(self) -> List[Loan]:
        with self._unit_of_work() as db:
            return [to_domain(row) for row in LoanRepository(db).list_loans()]

    def get_loan(self, loan_id: str) -> Loan:
        with self._unit_of_work() as db:
            row = LoanRepository(db).get_loan(loan_id)
            if row is None:
                raise LoanNotFoundError(loan_id)
            return to_domain(row)

    def create_loan(self, loan: Loan) -> Loan:
        with self._unit_of_work() as db:
            return to_domain(LoanRepository(db).create_loan(loan))

    def apply(self, loan_id: str, mutation: LoanMutation) -> Loan:
        with self._unit_of_work() as db:
            repo = LoanRepository(db)
            row = repo.get_loan(loan_id, for_update=True)
            if row is None:
                raise LoanNotFoundError(loan_id)
            updated = mutation(to_domain(row))
            return to_domain(repo.save_loan(row, updated))

    def delete_loan(self, loan_id: str) -> None:
        with self._unit_of_work() as db:
            if not LoanRepository(db).delete_loan(loan_id):
                raise LoanNotFoundError(loan_id)

    def ping(self) -> bool:
        """Probe the connection; creates the schema on the first successful probe"""
        try:
            if not self._schema_ready:
                self.create_schema()
                self._schema_ready = True
            with self._unit_of_work() as db:
                db.execute(text("SELECT 1"))
            return True
        except StorageUnavailableError:
            return False
