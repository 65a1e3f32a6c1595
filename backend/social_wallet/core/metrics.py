"""Prometheus collectors shared by the app and the services"""

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "social_wallet_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "social_wallet_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
LEDGER_COINS = Counter(
    "social_wallet_ledger_coins_total",
    "Coins moved through the wallet ledger",
    ["type", "direction"],
)
WEBHOOK_EVENTS = Counter(
    "social_wallet_webhook_events_total",
    "Payment webhook events received",
    ["event_type", "outcome"],
)
