"""Vector store module."""

from vector_indexer.vectorstore.models import Match, UpsertFailure, UpsertResult
from vector_indexer.vectorstore.service import (
    QdrantVectorStore,
    VectorStore,
    close_vector_store,
    get_vector_store,
    reset_vector_store,
)

__all__ = [
    "Match",
    "QdrantVectorStore",
    "UpsertFailure",
    "UpsertResult",
    "VectorStore",
    "close_vector_store",
    "get_vector_store",
    "reset_vector_store",
]
