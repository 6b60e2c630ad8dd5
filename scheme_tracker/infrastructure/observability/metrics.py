"""Prometheus metrics for monitoring notification delivery, reminders and payments"""

from prometheus_client import Counter, Histogram

from scheme_tracker.domain.models import DispatchOutcome

# Notification metrics
notification_counter = Counter(
    "scheme_notifications_total",
    "Notifications processed by final stage",
    ["kind", "outcome"],  # payment_confirmation | payment_reminder ; logged | skipped | failed
)

dispatch_latency_histogram = Histogram(
    "scheme_dispatch_latency_seconds",
    "Notification channel send time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

dispatch_failure_counter = Counter(
    "scheme_dispatch_failures_total",
    "Failed notification channel sends",
)

# Payment metrics
payments_recorded_counter = Counter(
    "scheme_payments_recorded_total",
    "Payments recorded through the API",
    ["payment_mode"],
)

# Tick metrics
tick_holders_counter = Counter(
    "scheme_tick_holders_total",
    "Holders evaluated by reminder ticks",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_outcome(outcome: DispatchOutcome) -> None:
    """Record the terminal stage of one notification unit"""
    notification_counter.labels(kind=outcome.kind.value, outcome=outcome.stage.value).inc()
