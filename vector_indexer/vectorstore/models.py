"""Vector store data models."""

from typing import Any

from pydantic import BaseModel, Field


class Match(BaseModel):
    """Result from a vector similarity query.

    Attributes:
        id: Vector identifier.
        score: Similarity score (higher is more similar).
        metadata: Stored metadata, empty when not requested.
    """

    id: str = Field(description="Vector identifier")
    score: float = Field(description="Similarity score")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Vector metadata",
    )


class UpsertFailure(BaseModel):
    """A sub-batch the store rejected."""

    batch_index: int = Field(description="Position of the sub-batch in the upsert")
    ids: list[str] = Field(description="Vector ids that were not stored")
    error: str = Field(description="Backend error message")


class UpsertResult(BaseModel):
    """Aggregated outcome of a chunked upsert.

    Every sub-batch is attempted; callers inspect `failures` to find the
    vectors that were not stored.
    """

    total: int = Field(default=0, description="Vectors submitted")
    upserted: int = Field(default=0, description="Vectors acknowledged by the store")
    batches: int = Field(default=0, description="Upsert requests issued")
    failures: list[UpsertFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """True when every sub-batch was stored."""
        return not self.failures

    @property
    def failed_ids(self) -> list[str]:
        """Ids of all vectors that were not stored."""
        return [vector_id for failure in self.failures for vector_id in failure.ids]
