"""API routes for similarity queries."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from vector_indexer.logging_config import get_logger
from vector_indexer.retrieval.pipeline import QueryPipeline
from vector_indexer.vectorstore.models import Match

logger = get_logger(__name__)


router = APIRouter(prefix="/api/v1", tags=["Query"])


class QueryRequest(BaseModel):
    """Request body for a similarity query."""

    text: str = Field(min_length=1, description="Text to search for")
    top_k: int = Field(default=10, ge=1, le=100, description="Number of matches")
    namespace: str | None = Field(default=None, description="Namespace to search")


class MatchResponse(BaseModel):
    """A single match in a query response."""

    id: str = Field(description="Vector identifier")
    score: float = Field(description="Similarity score")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Stored metadata")


class QueryResponse(BaseModel):
    """Response from a similarity query."""

    matches: list[MatchResponse] = Field(description="Matches, best first")
    count: int = Field(description="Number of matches")


def get_query_pipeline() -> QueryPipeline:
    """Dependency providing a query pipeline built from settings."""
    return QueryPipeline()


@router.post("/query", response_model=QueryResponse)
async def query_endpoint(
    request: QueryRequest,
    pipeline: Annotated[QueryPipeline, Depends(get_query_pipeline)],
) -> QueryResponse:
    """Embed the text and return its nearest stored vectors."""
    matches = await pipeline.run(
        request.text,
        top_k=request.top_k,
        namespace=request.namespace,
    )
    return matches_to_query_response(matches)


def matches_to_query_response(matches: list[Match]) -> QueryResponse:
    """Convert store matches to the API response."""
    return QueryResponse(
        matches=[
            MatchResponse(id=m.id, score=m.score, metadata=m.metadata)
            for m in matches
        ],
        count=len(matches),
    )
