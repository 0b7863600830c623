"""Pytest fixtures for testing"""

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from loan_tracker.api.main import create_app
from loan_tracker.domain import ledger
from loan_tracker.domain.models import InterestPeriod, Loan, LoanTerms
from loan_tracker.infrastructure.database.models import Base
from loan_tracker.infrastructure.database.session import create_db_engine
from loan_tracker.infrastructure.storage.database import DatabaseBackend
from loan_tracker.infrastructure.storage.memory import InMemoryBackend
from loan_tracker.infrastructure.storage.selector import StorageSelector


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    """Fresh in-process store"""
    return InMemoryBackend()


@pytest.fixture
def db_backend(tmp_path) -> Generator[DatabaseBackend, None, None]:
    """Database backend on a throwaway SQLite file"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    backend = DatabaseBackend(engine)
    backend.create_schema()
    try:
        yield backend
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(memory_backend: InMemoryBackend) -> TestClient:
    """API client served from the in-process store"""
    app = create_app(storage_selector=StorageSelector(fallback=memory_backend))
    return TestClient(app)


@pytest.fixture
def db_client(db_backend: DatabaseBackend) -> TestClient:
    """API client served from the database, with an empty fallback"""
    selector = StorageSelector(fallback=InMemoryBackend(), primary=db_backend)
    app = create_app(storage_selector=selector)
    return TestClient(app)


@pytest.fixture
def sample_loan() -> Loan:
    """10000 at 5% monthly over 12 months: balance 16000"""
    return ledger.open_loan(
        name="Ana Reyes",
        contact="+63 912 345 6789",
        address="12 Mabini St",
        terms=LoanTerms(
            principal=10000,
            term_months=12,
            interest_rate=5,
            interest_period=InterestPeriod.MONTHLY,
        ),
        monthly_payment=1500,
    )
