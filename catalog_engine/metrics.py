"""
Prometheus Metrics Module
Version: 1.0

In-process metrics for the catalog engine. Exposing them (HTTP endpoint,
push gateway) is left to the hosting application.

Usage:
    from catalog_engine.metrics import SEARCH_DURATION, record_search

    with SEARCH_DURATION.labels(kind="tools").time():
        results = engine.search_tools(query)
    record_search("tools", result_count=len(results))
"""
from prometheus_client import Counter, Histogram, Gauge, REGISTRY
from prometheus_client import generate_latest


# =============================================================================
# SEARCH METRICS
# =============================================================================

SEARCH_REQUESTS_TOTAL = Counter(
    'catalog_search_requests_total',
    'Total search requests',
    ['kind']
)

SEARCH_EMPTY_RESULTS_TOTAL = Counter(
    'catalog_search_empty_results_total',
    'Searches that returned no results',
    ['kind']
)

SEARCH_DURATION = Histogram(
    'catalog_search_duration_seconds',
    'Search duration in seconds',
    ['kind'],
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0]
)


# =============================================================================
# INDEX METRICS
# =============================================================================

INDEX_BUILDS_TOTAL = Counter(
    'catalog_index_builds_total',
    'Total catalog index builds'
)

INDEX_BUILD_DURATION = Histogram(
    'catalog_index_build_duration_seconds',
    'Catalog index build duration in seconds',
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

INDEXED_TOOLS = Gauge(
    'catalog_indexed_tools',
    'Number of catalog entries in the current index'
)


# =============================================================================
# PLANNING METRICS
# =============================================================================

PLAN_RESOLUTIONS_TOTAL = Counter(
    'catalog_plan_resolutions_total',
    'Creation plan resolutions',
    ['status']
)


# =============================================================================
# HELPERS
# =============================================================================

def record_search(kind: str, result_count: int) -> None:
    """Record a completed search."""
    SEARCH_REQUESTS_TOTAL.labels(kind=kind).inc()
    if result_count == 0:
        SEARCH_EMPTY_RESULTS_TOTAL.labels(kind=kind).inc()


def record_index_build(duration_seconds: float, tool_count: int) -> None:
    """Record a completed index build."""
    INDEX_BUILDS_TOTAL.inc()
    INDEX_BUILD_DURATION.observe(duration_seconds)
    INDEXED_TOOLS.set(tool_count)


def record_plan_resolution(success: bool, error_code: str = "") -> None:
    """Record a creation plan resolution outcome."""
    status = "success" if success else (error_code or "error")
    PLAN_RESOLUTIONS_TOTAL.labels(status=status).inc()


def get_metrics_text() -> bytes:
    """Render all metrics in Prometheus text format."""
    return generate_latest(REGISTRY)
