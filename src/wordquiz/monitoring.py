"""Monitoring configuration for the quiz."""
from prometheus_client import Counter, Gauge, start_http_server

# Gameplay metrics
answers_recorded = Counter(
    "wordquiz_answers_recorded_total",
    "Total number of answers recorded",
    ["difficulty", "result"],
)

words_served = Counter(
    "wordquiz_words_served_total",
    "Total number of words served by the cycling selector",
    ["difficulty", "category"],
)

categories_exhausted = Counter(
    "wordquiz_categories_exhausted_total",
    "Number of times a category was fully cycled",
    ["difficulty", "category"],
)

# Word bank metrics
bank_loads = Counter(
    "wordquiz_bank_loads_total",
    "Word bank loads by outcome",
    ["status"],
)

degraded_banks = Gauge(
    "wordquiz_degraded_banks",
    "Number of word banks currently served from the built-in fallback",
)

# Storage metrics
storage_errors = Counter(
    "wordquiz_storage_errors_total",
    "Total number of storage errors",
    ["operation"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
