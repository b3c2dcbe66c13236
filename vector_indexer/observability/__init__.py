"""Observability module for metrics and monitoring."""

from vector_indexer.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
    track_embedding_request,
    track_query,
    track_upsert_batch,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "get_metrics_content_type",
    "track_embedding_request",
    "track_query",
    "track_upsert_batch",
]
