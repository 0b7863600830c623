"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

_service_name = "loan-tracker"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = _service_name


def setup_logging(level: str = "INFO", service_name: str = "loan-tracker") -> None:
    """Configure structured JSON logging"""
    global _service_name
    _service_name = service_name

    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_ledger_event(
    request_id: str,
    event: str,
    loan_id: Optional[str],
    remaining_balance: float,
    **details: Any,
) -> None:
    """Log a structured ledger mutation outcome"""
    logging.info(
        "Ledger event",
        extra={
            "request_id": request_id,
            "event": event,
            "loan_id": loan_id,
            "remaining_balance": remaining_balance,
            **details,
        },
    )
