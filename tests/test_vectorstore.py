"""Tests for vector store module."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import fake_values
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import CollectionStatus, Distance, VectorParams

from vector_indexer.config import QdrantSettings
from vector_indexer.embeddings.models import Vector
from vector_indexer.exceptions import (
    ConfigurationError,
    ErrorCode,
    IndexCreationError,
    IndexTimeoutError,
    InvalidArgumentError,
    QueryError,
)
from vector_indexer.vectorstore.models import Match, UpsertFailure, UpsertResult
from vector_indexer.vectorstore.service import (
    QdrantVectorStore,
    close_vector_store,
    get_vector_store,
    reset_vector_store,
)


def _settings(**overrides: object) -> QdrantSettings:
    values: dict[str, object] = {
        "url": "http://localhost:6333",
        "api_key": "test-key",
        "collection_name": "questions",
        "ready_poll_interval": 0.01,
        "ready_timeout": 0.05,
    }
    values.update(overrides)
    return QdrantSettings(**values)  # type: ignore[arg-type]


def _vectors(count: int, dimensions: int = 8) -> list[Vector]:
    return [
        Vector(values=fake_values(f"doc {i}", dimensions), metadata={"text": f"doc {i}"})
        for i in range(count)
    ]


def _collection_info(status: CollectionStatus = CollectionStatus.GREEN, size: int = 8) -> MagicMock:
    info = MagicMock()
    info.status = status
    info.config.params.vectors = VectorParams(size=size, distance=Distance.COSINE)
    return info


class TestModels:
    """Tests for store models."""

    def test_match_defaults(self) -> None:
        """Match metadata defaults to empty."""
        match = Match(id="1", score=0.9)
        assert match.metadata == {}

    def test_upsert_result_failed_ids(self) -> None:
        """failed_ids flattens every failed sub-batch."""
        result = UpsertResult(
            total=4,
            upserted=1,
            failures=[
                UpsertFailure(batch_index=0, ids=["a"], error="x"),
                UpsertFailure(batch_index=2, ids=["c", "d"], error="y"),
            ],
        )
        assert not result.succeeded
        assert result.failed_ids == ["a", "c", "d"]

    def test_upsert_result_success(self) -> None:
        """No failures means success."""
        assert UpsertResult(total=2, upserted=2).succeeded


class TestQdrantVectorStore:
    """Tests for QdrantVectorStore against a mocked client."""

    def _create_mock_client(self) -> AsyncMock:
        """Create a mock Qdrant client."""
        client = AsyncMock()
        client.collection_exists = AsyncMock(return_value=False)
        client.create_collection = AsyncMock()
        client.get_collection = AsyncMock(return_value=_collection_info())
        client.upsert = AsyncMock()
        mock_response = MagicMock()
        mock_response.points = []
        client.query_points = AsyncMock(return_value=mock_response)
        client.close = AsyncMock()
        return client

    def test_requires_api_key_without_client(self) -> None:
        """Construction without credentials fails before any network call."""
        with pytest.raises(ConfigurationError) as exc_info:
            QdrantVectorStore(settings=QdrantSettings(url="http://localhost:6333"))

        assert exc_info.value.details["missing"] == ["QDRANT_API_KEY"]

    def test_requires_url_without_client(self) -> None:
        """The endpoint is required too."""
        with pytest.raises(ConfigurationError):
            QdrantVectorStore(settings=QdrantSettings(api_key="k"))

    async def test_connect_without_api_key(self) -> None:
        """A key cleared after construction fails with ConfigurationError."""
        settings = _settings()
        store = QdrantVectorStore(settings=settings)
        settings.api_key = None

        with pytest.raises(ConfigurationError):
            await store.create_index_if_not_exists("questions", 8)

    def test_construction_is_lazy(self) -> None:
        """No client exists until the first operation."""
        store = QdrantVectorStore(settings=_settings())
        assert store._client is None

    async def test_create_index(self) -> None:
        """A missing index is created with cosine distance."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        created = await store.create_index_if_not_exists("questions", dimensions=384)

        assert created is True
        call_kwargs = mock_client.create_collection.call_args.kwargs
        assert call_kwargs["collection_name"] == "questions"
        assert call_kwargs["vectors_config"].size == 384
        assert call_kwargs["vectors_config"].distance == Distance.COSINE

    async def test_create_index_twice_creates_once(self) -> None:
        """The second call sees the index and issues no creation request."""
        mock_client = self._create_mock_client()
        mock_client.collection_exists = AsyncMock(side_effect=[False, True])
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        first = await store.create_index_if_not_exists("questions", 384)
        second = await store.create_index_if_not_exists("questions", 384)

        assert (first, second) == (True, False)
        mock_client.create_collection.assert_called_once()

    async def test_existing_index_untouched(self) -> None:
        """An existing index is neither recreated nor inspected."""
        mock_client = self._create_mock_client()
        mock_client.collection_exists = AsyncMock(return_value=True)
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        await store.create_index_if_not_exists("questions", 999)

        mock_client.create_collection.assert_not_called()
        mock_client.get_collection.assert_not_called()

    async def test_waits_until_ready(self) -> None:
        """Creation returns once the collection reports green."""
        mock_client = self._create_mock_client()
        mock_client.get_collection = AsyncMock(
            side_effect=[
                _collection_info(CollectionStatus.YELLOW),
                _collection_info(CollectionStatus.YELLOW),
                _collection_info(CollectionStatus.GREEN),
            ]
        )
        store = QdrantVectorStore(settings=_settings(ready_timeout=1.0), client=mock_client)

        await store.create_index_if_not_exists("questions", 8)

        assert mock_client.get_collection.call_count == 3

    async def test_readiness_timeout(self) -> None:
        """A collection that never turns green raises IndexTimeoutError."""
        mock_client = self._create_mock_client()
        mock_client.get_collection = AsyncMock(
            return_value=_collection_info(CollectionStatus.YELLOW)
        )
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        with pytest.raises(IndexTimeoutError) as exc_info:
            await store.create_index_if_not_exists("questions", 8)

        assert exc_info.value.code == ErrorCode.INDEX_TIMEOUT
        assert mock_client.get_collection.call_count >= 2

    async def test_creation_failure(self) -> None:
        """Backend errors during creation raise IndexCreationError."""
        mock_client = self._create_mock_client()
        mock_client.create_collection = AsyncMock(side_effect=RuntimeError("quota"))
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        with pytest.raises(IndexCreationError, match="quota"):
            await store.create_index_if_not_exists("questions", 8)

    async def test_validate_dimensions_match(self) -> None:
        """Matching dimensions pass."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        await store.validate_dimensions("questions", 8)

    async def test_validate_dimensions_mismatch(self) -> None:
        """A different dimension is reported as an index problem."""
        mock_client = self._create_mock_client()
        mock_client.get_collection = AsyncMock(return_value=_collection_info(size=768))
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        with pytest.raises(IndexCreationError) as exc_info:
            await store.validate_dimensions("questions", 384)

        assert exc_info.value.code == ErrorCode.INDEX_DIMENSION_MISMATCH
        assert exc_info.value.details["index_dimensions"] == 768

    async def test_chunked_upsert_splits_by_store_limit(self) -> None:
        """250 vectors with a limit of 100 need three requests."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(upsert_batch_size=100), client=mock_client)

        result = await store.chunked_upsert("questions", _vectors(250))

        assert mock_client.upsert.call_count == 3
        sizes = [len(c.kwargs["points"]) for c in mock_client.upsert.call_args_list]
        assert sizes == [100, 100, 50]
        assert result.upserted == 250
        assert result.batches == 3
        assert result.succeeded

    async def test_chunked_upsert_continues_after_failure(self) -> None:
        """A failing second sub-batch does not stop the third."""
        mock_client = self._create_mock_client()
        mock_client.upsert = AsyncMock(side_effect=[None, RuntimeError("payload too large"), None])
        store = QdrantVectorStore(settings=_settings(upsert_batch_size=2), client=mock_client)
        vectors = _vectors(6)

        result = await store.chunked_upsert("questions", vectors)

        assert mock_client.upsert.call_count == 3
        submitted = [
            [p.id for p in c.kwargs["points"]] for c in mock_client.upsert.call_args_list
        ]
        assert submitted[0] == [vectors[0].id, vectors[1].id]
        assert submitted[2] == [vectors[4].id, vectors[5].id]
        assert result.upserted == 4
        assert len(result.failures) == 1
        assert result.failures[0].batch_index == 1
        assert result.failed_ids == [vectors[2].id, vectors[3].id]
        assert "payload too large" in result.failures[0].error

    async def test_chunked_upsert_empty(self) -> None:
        """Nothing to write means no requests."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        result = await store.chunked_upsert("questions", [])

        assert result.total == 0
        mock_client.upsert.assert_not_called()

    async def test_chunked_upsert_namespace_payload(self) -> None:
        """The namespace is stored with each point."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        await store.chunked_upsert("questions", _vectors(1), namespace="quora")

        point = mock_client.upsert.call_args.kwargs["points"][0]
        assert point.payload == {"text": "doc 0", "namespace": "quora"}

    async def test_query_returns_matches_in_order(self) -> None:
        """Matches keep the store's descending score order."""
        mock_client = self._create_mock_client()
        points = []
        for point_id, score in (("a", 0.9), ("b", 0.7)):
            point = MagicMock()
            point.id = point_id
            point.score = score
            point.payload = {"text": point_id, "namespace": "quora"}
            points.append(point)
        mock_client.query_points.return_value.points = points
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        matches = await store.query("questions", [0.1, 0.2], top_k=2, namespace="quora")

        assert [m.id for m in matches] == ["a", "b"]
        assert matches[0].metadata == {"text": "a"}
        call_kwargs = mock_client.query_points.call_args.kwargs
        assert call_kwargs["limit"] == 2
        assert call_kwargs["query_filter"] is not None

    async def test_query_without_namespace_has_no_filter(self) -> None:
        """No namespace means an unfiltered query."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        matches = await store.query("questions", [0.1], top_k=3)

        assert matches == []
        assert mock_client.query_points.call_args.kwargs["query_filter"] is None

    async def test_query_without_metadata(self) -> None:
        """Metadata is omitted when not requested."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        await store.query("questions", [0.1], include_metadata=False)

        assert mock_client.query_points.call_args.kwargs["with_payload"] is False

    async def test_query_failure(self) -> None:
        """Backend failures raise QueryError."""
        mock_client = self._create_mock_client()
        mock_client.query_points = AsyncMock(side_effect=RuntimeError("unavailable"))
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        with pytest.raises(QueryError) as exc_info:
            await store.query("questions", [0.1])

        assert exc_info.value.code == ErrorCode.QUERY_ERROR

    async def test_query_rejects_non_positive_top_k(self) -> None:
        """top_k must be at least one."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(), client=mock_client)

        with pytest.raises(InvalidArgumentError):
            await store.query("questions", [0.1], top_k=0)
        mock_client.query_points.assert_not_called()

    async def test_close(self) -> None:
        """Store closes client properly."""
        mock_client = self._create_mock_client()
        store = QdrantVectorStore(settings=_settings(), client=mock_client)
        store._owns_client = True

        await store.close()

        mock_client.close.assert_called_once()


class TestInMemoryRoundTrip:
    """End-to-end behaviour against an in-process Qdrant."""

    @pytest.fixture
    async def store(self) -> QdrantVectorStore:
        client = AsyncQdrantClient(location=":memory:")
        store = QdrantVectorStore(settings=_settings(upsert_batch_size=3), client=client)
        await store.create_index_if_not_exists("questions", 8)
        return store

    async def test_empty_index_returns_no_matches(self, store: QdrantVectorStore) -> None:
        """Querying an empty index is not an error."""
        assert await store.query("questions", fake_values("anything"), top_k=5) == []

    async def test_single_vector_top_1(self, store: QdrantVectorStore) -> None:
        """top_k=1 against one vector returns exactly one match."""
        await store.chunked_upsert("questions", _vectors(1))

        matches = await store.query("questions", fake_values("other"), top_k=1)

        assert len(matches) == 1

    async def test_round_trip_identical_text_scores_highest(self, store: QdrantVectorStore) -> None:
        """Querying with a stored vector returns it first with score 1."""
        vectors = _vectors(10)
        result = await store.chunked_upsert("questions", vectors)
        assert result.upserted == 10

        target = vectors[6]
        matches = await store.query("questions", target.values, top_k=3)

        assert matches[0].id == target.id
        assert matches[0].score == pytest.approx(1.0, abs=1e-5)
        assert matches[0].metadata == {"text": "doc 6"}
        assert [m.score for m in matches] == sorted((m.score for m in matches), reverse=True)

    async def test_namespaces_are_isolated(self, store: QdrantVectorStore) -> None:
        """A namespaced query only sees its own vectors."""
        first, second = _vectors(2)
        await store.chunked_upsert("questions", [first], namespace="a")
        await store.chunked_upsert("questions", [second], namespace="b")

        matches = await store.query("questions", first.values, top_k=5, namespace="b")

        assert [m.id for m in matches] == [second.id]


class TestVectorStoreSingleton:
    """Tests for the process-wide store."""

    def test_same_instance(self) -> None:
        """Repeated calls return the same store."""
        first = get_vector_store(_settings())
        second = get_vector_store()
        assert first is second

    def test_missing_config(self) -> None:
        """First construction without configuration fails."""
        with pytest.raises(ConfigurationError):
            get_vector_store(QdrantSettings())

    def test_reset_creates_new_instance(self) -> None:
        """reset_vector_store forgets the instance."""
        first = get_vector_store(_settings())
        reset_vector_store()
        assert get_vector_store(_settings()) is not first

    def test_concurrent_first_use_builds_once(self) -> None:
        """Threads racing on first use share one store."""
        settings = _settings()
        with ThreadPoolExecutor(max_workers=8) as pool:
            stores = list(pool.map(lambda _: get_vector_store(settings), range(32)))
        assert all(store is stores[0] for store in stores)

    async def test_close_vector_store(self) -> None:
        """Closing forgets the instance."""
        first = get_vector_store(_settings())
        await close_vector_store()
        assert get_vector_store(_settings()) is not first
