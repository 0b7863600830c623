"""In-process loan store, optionally snapshotted to a JSON data file"""

import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import TypeAdapter

from loan_tracker.domain.exceptions import LoanNotFoundError
from loan_tracker.domain.models import Loan
from loan_tracker.infrastructure.storage.base import LoanMutation, StorageBackend

logger = logging.getLogger(__name__)

_snapshot_adapter = TypeAdapter(List[Loan])
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryBackend(StorageBackend):
    """Dict-backed store with a lock per loan for read-modify-write atomicity"""

    name = "memory"

    def __init__(self, data_file: Optional[str | Path] = None):
        self.data_file = Path(data_file) if data_file else None
        self._loans: Dict[str, Loan] = {}
        self._registry_lock = threading.Lock()
        self._loan_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)

        if self.data_file is not None and self.data_file.exists():
            self._load()

    def list_loans(self) -> List[Loan]:
        with self._registry_lock:
            loans = list(self._loans.values())
        return sorted(loans, key=lambda loan: loan.created_at or _EPOCH, reverse=True)

    def get_loan(self, loan_id: str) -> Loan:
        with self._registry_lock:
            loan = self._loans.get(loan_id)
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    def create_loan(self, loan: Loan) -> Loan:
        stored = replace(loan, id=str(uuid.uuid4()))
        with self._registry_lock:
            self._loans[stored.id] = stored
            self._save()
        return stored

    def apply(self, loan_id: str, mutation: LoanMutation) -> Loan:
        with self._registry_lock:
            if loan_id not in self._loans:
                raise LoanNotFoundError(loan_id)
            loan_lock = self._loan_locks[loan_id]

        with loan_lock:
            current = self.get_loan(loan_id)
            updated = replace(mutation(current), id=current.id, created_at=current.created_at)
            with self._registry_lock:
                if loan_id not in self._loans:
                    # Deleted while the mutation ran
                    raise LoanNotFoundError(loan_id)
                self._loans[loan_id] = updated
                self._save()
        return updated

    def delete_loan(self, loan_id: str) -> None:
        with self._registry_lock:
            if self._loans.pop(loan_id, None) is None:
                raise LoanNotFoundError(loan_id)
            self._loan_locks.pop(loan_id, None)
            self._save()

    def ping(self) -> bool:
        return True

    def _load(self) -> None:
        loans = _snapshot_adapter.validate_json(self.data_file.read_bytes())
        self._loans = {loan.id: loan for loan in loans if loan.id}
        logger.info("Loaded loans from data file", extra={"path": str(self.data_file), "count": len(self._loans)})

    def _save(self) -> None:
        # Caller holds the registry lock
        if self.data_file is None:
            return
        tmp_path = self.data_file.with_suffix(self.data_file.suffix + ".tmp")
        tmp_path.write_bytes(_snapshot_adapter.dump_json(list(self._loans.values()), indent=2))
        tmp_path.replace(self.data_file)
