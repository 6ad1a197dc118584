"""Prometheus metrics for the emoji search service."""

from prometheus_client import Counter, Histogram, Info

from emoji_search.core.logging import get_logger

logger = get_logger(__name__)


def _safe_counter(*args, **kwargs):
    try:
        return Counter(*args, **kwargs)
    except ValueError:
        # Already registered (module re-imported in tests); return a no-op
        class DummyMetric:
            def labels(self, *args, **kwargs):
                return self

            def inc(self, *args, **kwargs):
                pass

        return DummyMetric()


def _safe_histogram(*args, **kwargs):
    try:
        return Histogram(*args, **kwargs)
    except ValueError:

        class DummyMetric:
            def labels(self, *args, **kwargs):
                return self

            def observe(self, *args, **kwargs):
                pass

        return DummyMetric()


# Application info
try:
    app_info = Info("emoji_search_app", "Emoji search application information")
    app_info.info({"version": "0.1.0"})
except ValueError:
    pass

# Search pipeline
search_requests_total = _safe_counter(
    "emoji_search_requests_total",
    "Total search requests by outcome",
    ["outcome"],  # cache_hit, computed, rate_limited, invalid, upstream_error
)
search_stage_duration_seconds = _safe_histogram(
    "emoji_search_stage_duration_seconds",
    "Duration of individual search pipeline stages",
    ["stage"],  # embedding, vector_query, rerank, total
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)
search_results_total = _safe_histogram(
    "emoji_search_results_total",
    "Number of emojis returned per computed search",
    buckets=[0, 1, 5, 10, 20, 40, 60, 100],
)
rerank_rejected_items_total = _safe_counter(
    "emoji_search_rerank_rejected_items_total",
    "Rerank output items dropped by sanitization",
)

# Cache
cache_hits_total = _safe_counter(
    "emoji_search_cache_hits_total",
    "Total cache hits",
    ["namespace"],  # matches, search
)
cache_misses_total = _safe_counter(
    "emoji_search_cache_misses_total",
    "Total cache misses",
    ["namespace"],
)
cache_errors_total = _safe_counter(
    "emoji_search_cache_errors_total",
    "Cache operations that failed and were degraded to miss/skip",
    ["operation"],  # get, put
)
cache_writes_total = _safe_counter(
    "emoji_search_cache_writes_total",
    "Cache writes by namespace",
    ["namespace"],
)

# Rate limiting
rate_limit_decisions_total = _safe_counter(
    "emoji_search_rate_limit_decisions_total",
    "Rate limiter admission decisions",
    ["decision"],  # allowed, denied, storage_error
)

# HTTP
http_requests_total = _safe_counter(
    "emoji_search_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
http_request_duration_seconds = _safe_histogram(
    "emoji_search_http_request_duration_seconds", "HTTP duration", ["method", "endpoint"]
)
