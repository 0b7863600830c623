"""Prometheus metrics for ledger activity, storage health and HTTP latency"""

from prometheus_client import Counter, Histogram

# Ledger metrics
loan_event_counter = Counter(
    "loan_events_total",
    "Accepted ledger mutations",
    ["event"],  # loan_created | payment_recorded | penalty_recorded | terms_edited | loan_deleted
)

payment_rejection_counter = Counter(
    "payment_rejections_total",
    "Payments rejected by amount validation",
)

advance_payment_counter = Counter(
    "advance_payments_total",
    "Payments that rolled the next due date forward",
)

# Storage metrics
storage_fallback_counter = Counter(
    "storage_fallback_total",
    "Times the primary database was marked unavailable",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_ledger_event(event: str, advanced_due_date: bool = False) -> None:
    """Count an accepted mutation and any rollforward it caused"""
    loan_event_counter.labels(event=event).inc()
    if advanced_due_date:
        advance_payment_counter.inc()
