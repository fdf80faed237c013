"""Prometheus metrics for quota consumption, COD risk decisions and notification delivery"""

from prometheus_client import Counter, Histogram

# Quota ledger metrics
quota_debit_counter = Counter(
    "quota_debit_total",
    "Quota debit attempts",
    ["outcome"],  # debited | rejected
)

quota_credits_counter = Counter(
    "quota_credits_consumed_total",
    "Transaction credits consumed by completed orders",
)

quota_alert_counter = Counter(
    "quota_alert_total",
    "Low/empty quota alerts raised",
    ["kind"],  # low | empty
)

subscription_assignment_counter = Counter(
    "subscription_assignment_total",
    "Package assignments",
    ["outcome"],  # committed | failed
)

# COD metrics
cod_eligibility_counter = Counter(
    "cod_eligibility_total",
    "COD eligibility checks",
    ["outcome"],  # eligible | amount | distance | buyer_disabled | merchant | trust
)

cod_outcome_counter = Counter(
    "cod_order_outcome_total",
    "COD order terminal transitions",
    ["status"],  # CONFIRMED | REJECTED | EXPIRED
)

trust_update_counter = Counter(
    "buyer_trust_update_total",
    "Buyer trust score updates",
    ["result"],  # success | failure
)

cod_disabled_counter = Counter(
    "buyer_cod_disabled_total",
    "Buyers whose COD privilege was switched off",
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification delivery attempts",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)

_REASON_LABELS = {
    "amount too large for COD": "amount",
    "distance too far for COD": "distance",
    "COD disabled for this buyer": "buyer_disabled",
    "merchant does not support COD": "merchant",
    "trust score too low for COD": "trust",
}


def record_cod_eligibility(eligible: bool, reason: str | None) -> None:
    """Bucket eligibility outcomes by the rule that failed"""
    label = "eligible" if eligible else _REASON_LABELS.get(reason or "", "other")
    cod_eligibility_counter.labels(outcome=label).inc()


def record_quota_debit(success: bool, credits: int, alert: str | None) -> None:
    quota_debit_counter.labels(outcome="debited" if success else "rejected").inc()
    if success:
        quota_credits_counter.inc(credits)
    if alert:
        quota_alert_counter.labels(kind=alert).inc()
