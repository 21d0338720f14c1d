"""Prometheus metrics for monitoring approval throughput, disbursement failures, and calculator use"""

from prometheus_client import Counter, Histogram

# Workflow metrics
transition_counter = Counter(
    "lending_transition_total",
    "Loan status transitions attempted",
    ["from_status", "to_status", "outcome"],  # outcome: applied | <error class>
)

funding_failure_counter = Counter(
    "lending_funding_failures_total",
    "Disbursements blocked by a missing or insufficient funding source",
)

# Calculator metrics
schedule_counter = Counter(
    "lending_schedule_computed_total",
    "Repayment schedules computed",
    ["method", "result"],  # result: ok | not_computable
)

# Ledger metrics
ledger_latency_histogram = Histogram(
    "ledger_latency_seconds",
    "Ledger service response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ledger_failure_counter = Counter(
    "ledger_failures_total",
    "Failed ledger calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(from_status: str, to_status: str, outcome: str) -> None:
    """Record a transition attempt; failed attempts carry the action as to_status"""
    transition_counter.labels(from_status=from_status, to_status=to_status, outcome=outcome).inc()


def record_schedule(method: str, computed: bool) -> None:
    schedule_counter.labels(method=method, result="ok" if computed else "not_computable").inc()
