"""Input rows and documents."""

from vector_indexer.documents.loader import CSVRowLoader, RowLoader
from vector_indexer.documents.models import Document, Row, Table

__all__ = [
    "CSVRowLoader",
    "Document",
    "Row",
    "RowLoader",
    "Table",
]
