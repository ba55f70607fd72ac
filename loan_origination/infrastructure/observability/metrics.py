"""Prometheus metrics for monitoring applications, approval decisions, authentication and the blacklist cache"""

from prometheus_client import Counter, Histogram

# Loan application metrics
loan_application_counter = Counter(
    "los_loan_applications_created_total",
    "Loan applications created",
)

approval_decision_counter = Counter(
    "los_approval_decisions_total",
    "Approval workflow decisions",
    ["level", "outcome"],  # submitted | approved | rejected | more_info
)

# Authentication metrics
auth_event_counter = Counter(
    "los_auth_events_total",
    "Authentication events",
    ["event", "outcome"],  # register | login | refresh | logout ; success | failure
)

blacklist_cache_error_counter = Counter(
    "los_token_blacklist_cache_errors_total",
    "Blacklist cache operations that failed and were skipped",
    ["operation"],  # read | write | delete
)

# Service health
request_duration_histogram = Histogram(
    "los_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_approval_decision(level: int, outcome: str) -> None:
    """Record one workflow step outcome at an approval level"""
    approval_decision_counter.labels(level=str(level), outcome=outcome).inc()


def record_auth_event(event: str, success: bool) -> None:
    auth_event_counter.labels(event=event, outcome="success" if success else "failure").inc()
