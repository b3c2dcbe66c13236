"""Embedding data models."""

from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

MetadataValue = str | int | float | bool


class Vector(BaseModel):
    """An embedded text ready to be written to the vector store.

    Attributes:
        id: Unique identifier, freshly generated per embedding.
        values: The embedding vector; its length is the model dimension.
        metadata: Scalar metadata stored alongside the vector.
    """

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique vector identifier",
    )
    values: list[float] = Field(description="Embedding values")
    metadata: dict[str, MetadataValue] = Field(
        default_factory=dict,
        description="Scalar metadata",
    )

    @field_validator("values")
    @classmethod
    def _not_empty(cls, values: list[float]) -> list[float]:
        if not values:
            raise ValueError("values must not be empty")
        return values

    @property
    def dimensions(self) -> int:
        """Number of dimensions in the vector."""
        return len(self.values)
