"""Per-request choice between the primary database and the fallback store"""

import logging
import threading
import time
from typing import Callable, Optional

from loan_tracker.config import Settings
from loan_tracker.infrastructure.database.session import create_db_engine
from loan_tracker.infrastructure.observability.metrics import storage_fallback_counter
from loan_tracker.infrastructure.storage.base import StorageBackend
from loan_tracker.infrastructure.storage.database import DatabaseBackend
from loan_tracker.infrastructure.storage.memory import InMemoryBackend

logger = logging.getLogger(__name__)


class StorageSelector:
    """
    Decide which backend serves the current request.

    Reconnect policy:
    - No primary configured: always the fallback
    - Primary state unknown: probe it once, then trust it until an operation fails
    - After a failure: serve the fallback and re-probe once reconnect_interval has passed
    """

    def __init__(
        self,
        fallback: StorageBackend,
        primary: Optional[StorageBackend] = None,
        reconnect_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fallback = fallback
        self.primary = primary
        self.reconnect_interval = reconnect_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._healthy: Optional[bool] = None
        self._down_since: Optional[float] = None

    def current(self) -> StorageBackend:
        if self.primary is None:
            return self.fallback

        with self._lock:
            if self._healthy:
                return self.primary
            if self._healthy is False and self._clock() - self._down_since < self.reconnect_interval:
                return self.fallback

        if self.primary.ping():
            self._mark_available()
            return self.primary

        self.mark_unavailable("probe failed")
        return self.fallback

    def mark_unavailable(self, reason: str) -> None:
        """Called when the primary fails; starts the reconnect cooldown"""
        with self._lock:
            was_healthy = self._healthy is not False
            self._healthy = False
            self._down_since = self._clock()

        if was_healthy:
            storage_fallback_counter.inc()
            logger.warning(
                "Primary storage unavailable, serving from fallback",
                extra={"reason": reason, "fallback": self.fallback.name},
            )

    def _mark_available(self) -> None:
        with self._lock:
            recovered = self._healthy is False
            self._healthy = True
            self._down_since = None

        if recovered:
            logger.info("Primary storage reconnected", extra={"backend": self.primary.name})


def build_storage_selector(settings: Settings) -> StorageSelector:
    """Wire backends from configuration"""
    fallback = InMemoryBackend(data_file=settings.fallback_data_file)
    primary = None
    if settings.database_url:
        primary = DatabaseBackend(create_db_engine(settings.database_url))

    return StorageSelector(
        fallback=fallback,
        primary=primary,
        reconnect_interval=settings.storage_reconnect_interval_seconds,
    )
