"""Prometheus metrics for payment outcomes, penalties, cycle runs and webhook performance"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Payment metrics
payment_counter = Counter(
    "billing_payments_total",
    "Payments registered",
    ["status"],  # pagado | abonado | adelanto | retrasado
)

payment_amount_counter = Counter(
    "billing_payment_amount_total",
    "Money received through registered payments",
)

# Billing cycle metrics
quotas_generated_counter = Counter(
    "billing_quotas_generated_total",
    "Pending quotas created by the billing-day run",
)

overdue_counter = Counter(
    "billing_quotas_overdue_total",
    "Quotas turned overdue by the deadline run",
)

penalty_amount_counter = Counter(
    "billing_penalty_amount_total",
    "Late fees charged",
    ["source"],  # cycle | payment
)

reconciliation_mismatch_counter = Counter(
    "billing_reconciliation_mismatch_total",
    "Stored partial payment credit disagreeing with the replayed history",
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(status: str, amount: Decimal, late_fee: Decimal) -> None:
    """Record payment metrics for monitoring collection and lateness"""
    payment_counter.labels(status=status).inc()
    payment_amount_counter.inc(float(amount))
    if late_fee > 0:
        penalty_amount_counter.labels(source="payment").inc(float(late_fee))


def record_overdue_run(newly_overdue: int, penalty_delta: Decimal) -> None:
    overdue_counter.inc(newly_overdue)
    if penalty_delta > 0:
        penalty_amount_counter.labels(source="cycle").inc(float(penalty_delta))
