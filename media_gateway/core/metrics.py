"""Prometheus metrics collection.

Defines counters and histograms for HTTP traffic, retrieval outcomes,
artifact cache activity and rate limiting.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

app_info = Info("media_gateway", "Media gateway application information")

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

retrievals_total = Counter(
    "retrievals_total",
    "Retrieval outcomes by result kind",
    ["outcome"],
)

extraction_duration_seconds = Histogram(
    "extraction_duration_seconds",
    "yt-dlp extraction duration in seconds",
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
)

cache_hits_total = Counter(
    "cache_hits_total",
    "Requests served from the artifact cache",
)

cache_evictions_total = Counter(
    "cache_evictions_total",
    "Files evicted from cache directories",
    ["directory"],
)

format_listings_total = Counter(
    "format_listings_total",
    "Format listings by strategy and result",
    ["strategy", "result"],
)

rate_limit_exceeded_total = Counter(
    "rate_limit_exceeded_total",
    "Total rate limit rejections",
    ["limiter"],
)

cache_files = Gauge(
    "cache_files",
    "Files currently held in each cache directory",
    ["cache"],
)


class MetricsCollector:
    """Static helpers for recording metrics consistently."""

    @staticmethod
    def record_request(method: str, endpoint: str, status: int, duration: float) -> None:
        http_requests_total.labels(method=method, endpoint=endpoint, status=str(status)).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

    @staticmethod
    def record_retrieval(outcome: str, duration: float = 0.0) -> None:
        """Record a retrieval outcome; duration is observed for real extractions only."""
        retrievals_total.labels(outcome=outcome).inc()
        if duration > 0:
            extraction_duration_seconds.observe(duration)

    @staticmethod
    def record_cache_hit() -> None:
        cache_hits_total.inc()

    @staticmethod
    def record_eviction(directory: str) -> None:
        cache_evictions_total.labels(directory=directory).inc()

    @staticmethod
    def record_format_listing(strategy: str, result: str) -> None:
        format_listings_total.labels(strategy=strategy, result=result).inc()

    @staticmethod
    def set_cache_files(cache: str, count: int) -> None:
        cache_files.labels(cache=cache).set(count)

    @staticmethod
    def record_rate_limit_exceeded(limiter: str) -> None:
        rate_limit_exceeded_total.labels(limiter=limiter).inc()


def initialize_metrics(version: str) -> None:
    """Publish application version information."""
    app_info.info({"version": version})
