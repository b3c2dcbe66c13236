"""Query orchestration."""

from vector_indexer.retrieval.pipeline import QueryPipeline

__all__ = ["QueryPipeline"]
