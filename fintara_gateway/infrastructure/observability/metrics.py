"""Prometheus metrics for monitoring the approval pipeline, disbursements and notification delivery"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Workflow metrics
loan_request_counter = Counter(
    "fintara_loan_requests_created_total",
    "Loan requests submitted by customers",
)

transition_counter = Counter(
    "fintara_loan_transitions_total",
    "Loan request status transitions",
    ["from_status", "to_status"],
)

rejected_operation_counter = Counter(
    "fintara_loan_operation_rejected_total",
    "Workflow operations refused with a domain error",
    ["operation", "code"],
)

disbursed_amount_counter = Counter(
    "fintara_disbursed_principal_total",
    "Principal released to customers (currency units)",
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Push/email provider response time",
    ["channel"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed push/email deliveries",
    ["channel"],
)

notification_dropped_counter = Counter(
    "notifications_dropped_total",
    "Notifications abandoned after delivery failed",
    ["channel"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(from_status: str, to_status: str, disbursed_principal: Decimal | None = None) -> None:
    """Record a committed transition; disbursements also add to the principal total"""
    transition_counter.labels(from_status=from_status, to_status=to_status).inc()
    if disbursed_principal is not None:
        disbursed_amount_counter.inc(float(disbursed_principal))


def record_rejection(operation: str, code: str) -> None:
    rejected_operation_counter.labels(operation=operation, code=code).inc()


def record_dropped_notification(channel: str) -> None:
    notification_dropped_counter.labels(channel=channel).inc()
