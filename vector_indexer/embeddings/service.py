"""Embedding engine interface and implementations."""

import asyncio
import inspect
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx

from vector_indexer.batching import batched
from vector_indexer.config import EmbeddingSettings, get_settings
from vector_indexer.embeddings.models import Vector
from vector_indexer.exceptions import EmbeddingError, ErrorCode, ModelInitError
from vector_indexer.logging_config import get_logger
from vector_indexer.observability.metrics import track_embedding_request

logger = get_logger(__name__)

BatchHandler = Callable[[list[Vector]], Awaitable[Any] | Any]


class EmbeddingEngine(ABC):
    """Abstract base class for embedding engines.

    Subclasses acquire their model in `init()` and produce raw values in
    `_embed_text()`. Input validation and batch scheduling are shared by
    every backend.
    """

    def __init__(self) -> None:
        self._initialized = False

    @abstractmethod
    async def init(self) -> None:
        """Acquire the underlying model resource.

        Must complete before any call to `embed`.

        Raises:
            ModelInitError: If the model cannot be loaded.
        """
        ...

    @abstractmethod
    async def _embed_text(self, text: str) -> list[float]:
        """Produce raw embedding values for one non-empty text."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...

    @property
    def is_initialized(self) -> bool:
        """Whether `init()` has completed."""
        return self._initialized

    async def close(self) -> None:
        """Release resources held by the engine."""
        self._initialized = False

    async def embed(self, text: str) -> Vector:
        """Generate the vector for a single text.

        Args:
            text: Text to embed.

        Returns:
            Vector with a fresh id and the text in its metadata.

        Raises:
            EmbeddingError: On empty input, use before init, or backend failure.
        """
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError(
                "Cannot embed empty text",
                details={"text": repr(text)[:100]},
            )
        if not self._initialized:
            raise EmbeddingError(
                "Embedding engine used before init()",
                details={"model": self.model_name},
            )

        start = time.perf_counter()
        try:
            values = await self._embed_text(text)
        except EmbeddingError:
            track_embedding_request(self.model_name, time.perf_counter() - start, 1, success=False)
            raise
        except Exception as e:
            track_embedding_request(self.model_name, time.perf_counter() - start, 1, success=False)
            raise EmbeddingError(
                f"Embedding backend failed: {e}",
                details={"model": self.model_name, "error": str(e)},
            ) from e

        track_embedding_request(self.model_name, time.perf_counter() - start, 1)

        if len(values) != self.dimensions:
            raise EmbeddingError(
                f"Model returned {len(values)} dimensions, expected {self.dimensions}",
                details={"model": self.model_name, "dimensions": len(values)},
            )

        return Vector(values=values, metadata={"text": text})

    async def embed_batch(
        self,
        texts: Sequence[str],
        batch_size: int,
        on_batch: BatchHandler,
    ) -> int:
        """Embed texts group by group, handing each group to ``on_batch``.

        Members of a group are embedded concurrently; the resulting vectors
        keep input order. ``on_batch`` runs once per group after all of its
        embeddings complete and is awaited before the next group starts, so
        at most one group of vectors is in flight.

        Args:
            texts: Ordered texts to embed.
            batch_size: Maximum texts per group.
            on_batch: Handler for each group's vectors, sync or async.

        Returns:
            Number of vectors delivered to ``on_batch``.

        Raises:
            InvalidArgumentError: If batch_size is not positive.
            EmbeddingError: On the first failed embedding; later groups are skipped.
        """
        delivered = 0
        for index, group in enumerate(batched(texts, batch_size)):
            vectors = await self._embed_group(group)

            result = on_batch(vectors)
            if inspect.isawaitable(result):
                await result

            delivered += len(vectors)
            logger.debug(
                f"Delivered batch {index}",
                extra={"batch_index": index, "batch_size": len(vectors), "delivered": delivered},
            )

        return delivered

    async def _embed_group(self, texts: list[str]) -> list[Vector]:
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(self.embed(text)) for text in texts]
        except ExceptionGroup as group_error:
            # embed() wraps backend failures, so the first one is an EmbeddingError
            raise group_error.exceptions[0] from None

        return [task.result() for task in tasks]


class HTTPEmbeddingEngine(EmbeddingEngine):
    """Embedding engine using an HTTP API.

    Compatible with OpenAI-style embedding APIs and
    text-embeddings-inference (TEI) servers.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "BAAI/bge-large-en-v1.5": 1024,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-small-en-v1.5": 384,
        "sentence-transformers/all-MiniLM-L6-v2": 384,
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    PROBE_TEXT = "dimension probe"

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP embedding engine.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one in `init()` if not provided.
        """
        super().__init__()
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None
        self._dimensions: int | None = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions.

        Learned from the probe request once initialized.
        """
        if self._dimensions is not None:
            return self._dimensions
        if self._settings.model in self.MODEL_DIMENSIONS:
            return self.MODEL_DIMENSIONS[self._settings.model]
        raise EmbeddingError(
            f"Dimensions of {self._settings.model} are unknown until init()",
            details={"model": self._settings.model},
        )

    @property
    def _url(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}/embeddings"

    async def init(self) -> None:
        """Create the HTTP client and probe the endpoint for its dimensions.

        Raises:
            ModelInitError: If the embedding service cannot be reached.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.timeout, pool=None),
            )

        try:
            embeddings = await self._request([self.PROBE_TEXT])
        except EmbeddingError as e:
            raise ModelInitError(
                f"Embedding model {self._settings.model} is unavailable: {e.message}",
                details={"url": self._url, **e.details},
            ) from e

        self._dimensions = len(embeddings[0])
        self._initialized = True
        logger.info(
            f"Embedding engine ready: {self._settings.model}",
            extra={"dimensions": self._dimensions, "url": self._url},
        )

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        await super().close()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _embed_text(self, text: str) -> list[float]:
        embeddings = await self._request([text])
        return embeddings[0]

    async def _request(self, texts: list[str]) -> list[list[float]]:
        """Make one embedding request.

        Args:
            texts: Texts to embed.

        Returns:
            One embedding per text, in input order.

        Raises:
            EmbeddingError: If the request fails or the response is malformed.
        """
        if self._client is None:
            raise EmbeddingError(
                "HTTP client is closed; call init() first",
                details={"url": self._url},
            )
        payload = {
            "input": texts,
            "model": self._settings.model,
        }

        try:
            response = await self._client.post(self._url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": self._url, "status": e.response.status_code},
            )
            raise EmbeddingError(
                f"Embedding service returned {e.response.status_code}",
                code=ErrorCode.EMBEDDING_ERROR,
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"Embedding request error: {e}",
                extra={"url": self._url},
            )
            raise EmbeddingError(
                f"Failed to connect to embedding service: {e}",
                code=ErrorCode.EMBEDDING_ERROR,
                details={"url": self._url},
            ) from e

        try:
            data = response.json()["data"]
            # OpenAI-style responses carry an explicit index per item
            if all("index" in item for item in data):
                data = sorted(data, key=lambda item: item["index"])
            embeddings = [[float(x) for x in item["embedding"]] for item in data]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingError(
                f"Invalid response from embedding service: {e}",
                code=ErrorCode.EMBEDDING_ERROR,
                details={"error": str(e)},
            ) from e

        if len(embeddings) != len(texts) or not all(embeddings):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}",
                code=ErrorCode.EMBEDDING_ERROR,
                details={"expected": len(texts), "received": len(embeddings)},
            )

        return embeddings


class SentenceTransformerEmbeddingEngine(EmbeddingEngine):
    """In-process embedding engine backed by sentence-transformers.

    Requires the ``local`` extra. Inference runs on a worker thread so the
    event loop stays responsive.
    """

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        model: Any | None = None,
    ) -> None:
        super().__init__()
        self._settings = settings or get_settings().embedding
        self._model = model
        self._owns_model = model is None
        self._dimensions: int | None = None

    @property
    def model_name(self) -> str:
        return self._settings.model

    @property
    def dimensions(self) -> int:
        if self._dimensions is None:
            raise EmbeddingError(
                f"Dimensions of {self._settings.model} are unknown until init()",
                details={"model": self._settings.model},
            )
        return self._dimensions

    async def init(self) -> None:
        """Load the model.

        Raises:
            ModelInitError: If sentence-transformers is missing or the model fails to load.
        """
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ModelInitError(
                    "sentence-transformers is not installed; install the 'local' extra",
                    details={"model": self._settings.model},
                ) from e

            logger.info(f"Loading embedding model '{self._settings.model}'")
            try:
                self._model = await asyncio.to_thread(SentenceTransformer, self._settings.model)
            except Exception as e:
                raise ModelInitError(
                    f"Failed to load embedding model {self._settings.model}: {e}",
                    details={"model": self._settings.model, "error": str(e)},
                ) from e

        self._dimensions = int(self._model.get_sentence_embedding_dimension())
        self._initialized = True
        logger.info(
            f"Embedding engine ready: {self._settings.model}",
            extra={"dimensions": self._dimensions},
        )

    async def close(self) -> None:
        """Drop the model if this engine loaded it."""
        await super().close()
        if self._owns_model:
            self._model = None

    async def _embed_text(self, text: str) -> list[float]:
        embedding = await asyncio.to_thread(self._model.encode, text)
        return [float(x) for x in embedding]


def create_embedding_engine(settings: EmbeddingSettings | None = None) -> EmbeddingEngine:
    """Build the engine selected by ``EMBEDDING_PROVIDER``.

    Args:
        settings: Embedding configuration. Uses defaults if not provided.

    Returns:
        An uninitialized embedding engine.
    """
    settings = settings or get_settings().embedding
    if settings.provider == "local":
        return SentenceTransformerEmbeddingEngine(settings=settings)
    return HTTPEmbeddingEngine(settings=settings)
