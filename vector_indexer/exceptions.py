"""Application exception hierarchy.

All custom exceptions inherit from VectorIndexerError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "VEC-1000"
    CONFIGURATION_ERROR = "VEC-1001"
    INVALID_ARGUMENT = "VEC-1002"
    INVALID_COLUMN = "VEC-1003"

    # Input errors (2xxx)
    DOCUMENT_NOT_FOUND = "VEC-2000"
    DOCUMENT_PARSE_ERROR = "VEC-2001"

    # Embedding errors (3xxx)
    EMBEDDING_ERROR = "VEC-3000"
    MODEL_INIT_ERROR = "VEC-3001"

    # Vector store errors (4xxx)
    VECTOR_STORE_ERROR = "VEC-4000"
    INDEX_CREATION_ERROR = "VEC-4001"
    INDEX_TIMEOUT = "VEC-4002"
    INDEX_DIMENSION_MISMATCH = "VEC-4003"
    UPSERT_ERROR = "VEC-4004"

    # Query errors (5xxx)
    QUERY_ERROR = "VEC-5000"


class VectorIndexerError(Exception):
    """Base exception for all vector indexer errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(VectorIndexerError):
    """Missing or invalid setup."""

    default_code = ErrorCode.CONFIGURATION_ERROR


class InvalidArgumentError(VectorIndexerError):
    """Bad caller input, such as a non-positive chunk size."""

    default_code = ErrorCode.INVALID_ARGUMENT


class InvalidColumnError(InvalidArgumentError):
    """Requested input column is absent from the input rows."""

    default_code = ErrorCode.INVALID_COLUMN


class DocumentError(VectorIndexerError):
    """Input source could not be read."""

    default_code = ErrorCode.DOCUMENT_NOT_FOUND


class EmbeddingError(VectorIndexerError):
    """Embedding backend error."""

    default_code = ErrorCode.EMBEDDING_ERROR


class ModelInitError(EmbeddingError):
    """Embedding model could not be loaded."""

    default_code = ErrorCode.MODEL_INIT_ERROR


class VectorStoreError(VectorIndexerError):
    """Vector store operation error."""

    default_code = ErrorCode.VECTOR_STORE_ERROR


class IndexCreationError(VectorStoreError):
    """Index could not be created or is incompatible."""

    default_code = ErrorCode.INDEX_CREATION_ERROR


class IndexTimeoutError(VectorStoreError):
    """Index did not become ready in time."""

    default_code = ErrorCode.INDEX_TIMEOUT


class UpsertError(VectorStoreError):
    """One or more upsert requests failed."""

    default_code = ErrorCode.UPSERT_ERROR


class QueryError(VectorStoreError):
    """Query-time backend failure."""

    default_code = ErrorCode.QUERY_ERROR
