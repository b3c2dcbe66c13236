"""Indexing orchestration."""

from vector_indexer.indexing.models import IndexingReport, IndexingState
from vector_indexer.indexing.pipeline import IndexingPipeline, ProgressCallback

__all__ = [
    "IndexingPipeline",
    "IndexingReport",
    "IndexingState",
    "ProgressCallback",
]
