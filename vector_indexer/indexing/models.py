"""Indexing run data models."""

from enum import Enum

from pydantic import BaseModel, Field


class IndexingState(str, Enum):
    """Lifecycle of an indexing run."""

    IDLE = "idle"
    LOADING_INPUT = "loading_input"
    ENSURING_INDEX = "ensuring_index"
    EMBEDDING = "embedding"
    DONE = "done"
    FAILED = "failed"


class IndexingReport(BaseModel):
    """Summary of a completed indexing run.

    Attributes:
        index: Index the vectors were written to.
        namespace: Namespace used, if any.
        documents_processed: Documents embedded and stored.
        batches: Embedding batches delivered to the store.
        skipped_rows: Rows skipped because their text was blank.
        index_created: Whether the run created the index.
    """

    index: str = Field(description="Target index name")
    namespace: str | None = Field(default=None, description="Target namespace")
    documents_processed: int = Field(default=0, description="Documents stored")
    batches: int = Field(default=0, description="Batches delivered")
    skipped_rows: int = Field(default=0, description="Blank rows skipped")
    index_created: bool = Field(default=False, description="Index created by this run")
