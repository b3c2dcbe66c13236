"""Embedding engine module."""

from vector_indexer.embeddings.models import MetadataValue, Vector
from vector_indexer.embeddings.service import (
    EmbeddingEngine,
    HTTPEmbeddingEngine,
    SentenceTransformerEmbeddingEngine,
    create_embedding_engine,
)

__all__ = [
    "EmbeddingEngine",
    "HTTPEmbeddingEngine",
    "MetadataValue",
    "SentenceTransformerEmbeddingEngine",
    "Vector",
    "create_embedding_engine",
]
