"""Vector store interface, Qdrant implementation and process-wide client."""

import asyncio
import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    CollectionStatus,
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointStruct,
    VectorParams,
)

from vector_indexer.batching import batched
from vector_indexer.config import QdrantSettings, get_settings
from vector_indexer.embeddings.models import Vector
from vector_indexer.exceptions import (
    ConfigurationError,
    ErrorCode,
    IndexCreationError,
    IndexTimeoutError,
    InvalidArgumentError,
    QueryError,
)
from vector_indexer.logging_config import get_logger
from vector_indexer.observability.metrics import track_query, track_upsert_batch
from vector_indexer.vectorstore.models import Match, UpsertFailure, UpsertResult

logger = get_logger(__name__)

NAMESPACE_KEY = "namespace"


class VectorStore(ABC):
    """Abstract base class for vector stores.

    Defines the interface for creating indexes, writing and querying vectors.
    """

    @abstractmethod
    async def create_index_if_not_exists(self, name: str, dimensions: int) -> bool:
        """Create an index unless one with that name exists.

        An existing index is left untouched, whatever its dimensions.
        A new index is only returned from once the store reports it ready.

        Args:
            name: Index name.
            dimensions: Vector dimensions.

        Returns:
            True if the index was created, False if it already existed.

        Raises:
            IndexCreationError: If creation fails.
            IndexTimeoutError: If the index is not ready within the configured wait.
        """
        ...

    @abstractmethod
    async def validate_dimensions(self, name: str, dimensions: int) -> None:
        """Check that an existing index stores vectors of ``dimensions``.

        Raises:
            IndexCreationError: If the index dimensions differ.
        """
        ...

    @abstractmethod
    async def chunked_upsert(
        self,
        index: str,
        vectors: Sequence[Vector],
        namespace: str | None = None,
    ) -> UpsertResult:
        """Insert or update vectors in store-sized sub-batches.

        A failed sub-batch does not stop the remaining ones.

        Args:
            index: Index name.
            vectors: Vectors to write.
            namespace: Optional logical partition.

        Returns:
            Aggregated outcome, including the ids that were not stored.
        """
        ...

    @abstractmethod
    async def query(
        self,
        index: str,
        vector: Sequence[float],
        top_k: int = 10,
        namespace: str | None = None,
        include_metadata: bool = True,
    ) -> list[Match]:
        """Find the vectors most similar to ``vector``.

        Args:
            index: Index name.
            vector: Query vector.
            top_k: Maximum matches to return.
            namespace: Optional logical partition.
            include_metadata: Whether to return stored metadata.

        Returns:
            Matches ordered by decreasing score; empty if nothing is stored.

        Raises:
            QueryError: If the query fails.
        """
        ...

    async def close(self) -> None:
        """Release the connection to the store."""


class QdrantVectorStore(VectorStore):
    """Qdrant vector store implementation.

    Namespaces are stored as a payload field and applied as a query filter.
    """

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        No network call is made here; the client connects lazily.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).

        Raises:
            ConfigurationError: If no client is given and the URL or API key is missing.
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None

        if client is None:
            missing = [
                name
                for name in self._settings.missing_required()
                if name != "QDRANT_COLLECTION_NAME"
            ]
            if missing:
                raise ConfigurationError(
                    f"Cannot connect to Qdrant, missing: {', '.join(missing)}",
                    details={"missing": missing},
                )

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = self._settings.api_key
            if api_key is None:
                raise ConfigurationError(
                    "Cannot connect to Qdrant, missing: QDRANT_API_KEY",
                    details={"missing": ["QDRANT_API_KEY"]},
                )
            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key.get_secret_value(),
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def create_index_if_not_exists(self, name: str, dimensions: int) -> bool:
        """Create a cosine collection and wait for it to turn green."""
        client = await self._get_client()

        try:
            if await client.collection_exists(name):
                logger.info(f"Index already exists: {name}")
                return False

            await client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(
                    size=dimensions,
                    distance=Distance.COSINE,
                ),
            )
        except Exception as e:
            raise IndexCreationError(
                f"Failed to create index: {e}",
                details={"index": name, "error": str(e)},
            ) from e

        logger.info(f"Created index: {name}", extra={"dimensions": dimensions})
        await self._wait_until_ready(client, name)
        return True

    async def _wait_until_ready(self, client: AsyncQdrantClient, name: str) -> None:
        interval = self._settings.ready_poll_interval
        attempts = max(1, math.ceil(self._settings.ready_timeout / interval))
        last_error: str | None = None

        for attempt in range(attempts):
            try:
                info = await client.get_collection(name)
            except Exception as e:
                last_error = str(e)
                logger.debug(f"Readiness check failed: {e}", extra={"index": name})
            else:
                if info.status == CollectionStatus.GREEN:
                    logger.info(f"Index ready: {name}", extra={"checks": attempt + 1})
                    return
            await asyncio.sleep(interval)

        raise IndexTimeoutError(
            f"Index {name} not ready after {self._settings.ready_timeout}s",
            details={
                "index": name,
                "timeout": self._settings.ready_timeout,
                "last_error": last_error,
            },
        )

    async def validate_dimensions(self, name: str, dimensions: int) -> None:
        """Compare the collection's configured size with ``dimensions``."""
        client = await self._get_client()

        try:
            info = await client.get_collection(name)
        except Exception as e:
            raise IndexCreationError(
                f"Failed to inspect index: {e}",
                details={"index": name, "error": str(e)},
            ) from e

        params = info.config.params.vectors
        # Named-vector collections have no single size to compare
        if not isinstance(params, VectorParams):
            return

        if params.size != dimensions:
            raise IndexCreationError(
                f"Index {name} stores {params.size}-dimensional vectors, "
                f"embedding model produces {dimensions}",
                code=ErrorCode.INDEX_DIMENSION_MISMATCH,
                details={"index": name, "index_dimensions": params.size, "model_dimensions": dimensions},
            )

    async def chunked_upsert(
        self,
        index: str,
        vectors: Sequence[Vector],
        namespace: str | None = None,
    ) -> UpsertResult:
        """Upsert vectors, one request per sub-batch, collecting failures."""
        result = UpsertResult(total=len(vectors))
        if not vectors:
            return result

        client = await self._get_client()

        for batch_index, group in enumerate(batched(vectors, self._settings.upsert_batch_size)):
            result.batches += 1
            try:
                points = [
                    PointStruct(
                        id=vector.id,
                        vector=vector.values,
                        payload=self._payload(vector, namespace),
                    )
                    for vector in group
                ]
                await client.upsert(collection_name=index, points=points, wait=True)
            except Exception as e:
                logger.error(
                    f"Upsert sub-batch {batch_index} failed: {e}",
                    extra={"index": index, "batch_index": batch_index, "size": len(group)},
                )
                track_upsert_batch(index, len(group), success=False)
                result.failures.append(
                    UpsertFailure(
                        batch_index=batch_index,
                        ids=[vector.id for vector in group],
                        error=str(e),
                    )
                )
                continue

            track_upsert_batch(index, len(points))
            result.upserted += len(points)

        logger.debug(
            f"Upserted {result.upserted}/{result.total} vectors",
            extra={"index": index, "batches": result.batches, "failed_batches": len(result.failures)},
        )
        return result

    async def query(
        self,
        index: str,
        vector: Sequence[float],
        top_k: int = 10,
        namespace: str | None = None,
        include_metadata: bool = True,
    ) -> list[Match]:
        """Query the collection for the nearest points."""
        if top_k < 1:
            raise InvalidArgumentError(
                f"top_k must be at least 1, got {top_k}",
                details={"top_k": top_k},
            )

        client = await self._get_client()
        start = time.perf_counter()

        try:
            response = await client.query_points(
                collection_name=index,
                query=list(vector),
                limit=top_k,
                query_filter=self._namespace_filter(namespace),
                with_payload=include_metadata,
            )
        except Exception as e:
            track_query(index, time.perf_counter() - start, 0, success=False)
            raise QueryError(
                f"Failed to query index: {e}",
                details={"index": index, "error": str(e)},
            ) from e

        matches = [
            Match(
                id=str(point.id),
                score=point.score if point.score is not None else 0.0,
                metadata=self._metadata(point.payload) if include_metadata else {},
            )
            for point in response.points
        ]

        track_query(index, time.perf_counter() - start, len(matches))
        return matches

    @staticmethod
    def _payload(vector: Vector, namespace: str | None) -> dict[str, Any]:
        payload: dict[str, Any] = dict(vector.metadata)
        if namespace:
            payload[NAMESPACE_KEY] = namespace
        return payload

    @staticmethod
    def _metadata(payload: dict[str, Any] | None) -> dict[str, Any]:
        if not payload:
            return {}
        return {key: value for key, value in payload.items() if key != NAMESPACE_KEY}

    @staticmethod
    def _namespace_filter(namespace: str | None) -> Filter | None:
        if not namespace:
            return None
        return Filter(
            must=[FieldCondition(key=NAMESPACE_KEY, match=MatchValue(value=namespace))]
        )


_store: QdrantVectorStore | None = None
_store_lock = threading.Lock()


def get_vector_store(settings: QdrantSettings | None = None) -> QdrantVectorStore:
    """Return the process-wide vector store, creating it on first use.

    Later calls return the same instance and ignore ``settings``.

    Raises:
        ConfigurationError: If the first construction lacks URL or API key.
    """
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = QdrantVectorStore(settings=settings)
                logger.debug("Vector store client created")
    return _store


async def close_vector_store() -> None:
    """Close and forget the process-wide vector store."""
    global _store
    with _store_lock:
        store, _store = _store, None
    if store is not None:
        await store.close()


def reset_vector_store() -> None:
    """Forget the process-wide vector store without closing it (tests only)."""
    global _store
    with _store_lock:
        _store = None
