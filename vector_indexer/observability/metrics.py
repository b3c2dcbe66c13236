"""Prometheus metrics for the vector indexer.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Embedding request latency
- Upsert sub-batch outcomes
- Query latency and result counts
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "status"],
)

EMBEDDING_BATCH_SIZE = Histogram(
    "embedding_batch_size",
    "Texts per embedding request",
    ["model"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000],
)

# Vector Store Metrics
UPSERT_BATCH_TOTAL = Counter(
    "vectorstore_upsert_batches_total",
    "Upsert sub-batches sent to the vector store",
    ["index", "status"],
)

UPSERT_VECTORS_TOTAL = Counter(
    "vectorstore_upserted_vectors_total",
    "Vectors written to the vector store",
    ["index"],
)

QUERY_DURATION = Histogram(
    "vectorstore_query_duration_seconds",
    "Vector store query duration in seconds",
    ["index", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

QUERY_MATCHES_RETURNED = Histogram(
    "vectorstore_query_matches_returned",
    "Number of matches returned per query",
    buckets=[0, 1, 2, 3, 5, 10, 20, 50],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        if path.startswith("/health"):
            return "/health"
        if path.startswith("/api/v1/"):
            parts = path.split("/")
            if len(parts) >= 4:
                return f"/api/v1/{parts[3]}"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_embedding_request(
    model: str,
    duration: float,
    batch_size: int,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        batch_size: Number of texts in the request.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, status=status).inc()
    EMBEDDING_BATCH_SIZE.labels(model=model).observe(batch_size)


def track_upsert_batch(index: str, vectors: int, success: bool = True) -> None:
    """Track one upsert sub-batch.

    Args:
        index: Target index name.
        vectors: Number of vectors in the sub-batch.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    UPSERT_BATCH_TOTAL.labels(index=index, status=status).inc()
    if success:
        UPSERT_VECTORS_TOTAL.labels(index=index).inc(vectors)


def track_query(
    index: str,
    duration: float,
    matches_returned: int,
    success: bool = True,
) -> None:
    """Track query metrics."""
    status = "success" if success else "error"

    QUERY_DURATION.labels(index=index, status=status).observe(duration)
    if success:
        QUERY_MATCHES_RETURNED.observe(matches_returned)
