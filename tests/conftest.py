"""Pytest configuration and shared fixtures."""

import hashlib
import os
from collections.abc import AsyncGenerator, Iterator

import pytest
from httpx import ASGITransport, AsyncClient

from vector_indexer.api.app import app
from vector_indexer.config import get_settings
from vector_indexer.embeddings.service import EmbeddingEngine
from vector_indexer.exceptions import ModelInitError
from vector_indexer.vectorstore.service import reset_vector_store

ENV_PREFIXES = ("QDRANT_", "EMBEDDING_")


class FakeEmbeddingEngine(EmbeddingEngine):
    """Deterministic hash-based engine for pipeline tests.

    Attributes:
        calls: Texts passed to the backend, in call order.
        events: Shared event log, appended to as ``("embed", text)``.
        fail_on: Texts whose embedding raises.
    """

    def __init__(
        self,
        dimensions: int = 8,
        fail_on: set[str] | None = None,
        fail_init: bool = False,
        events: list[tuple[str, object]] | None = None,
    ) -> None:
        super().__init__()
        self._dims = dimensions
        self.fail_on = fail_on or set()
        self.fail_init = fail_init
        self.calls: list[str] = []
        self.events = events if events is not None else []
        self.init_calls = 0
        self.closed = False

    @property
    def model_name(self) -> str:
        return "fake-model"

    @property
    def dimensions(self) -> int:
        return self._dims

    async def init(self) -> None:
        self.init_calls += 1
        if self.fail_init:
            raise ModelInitError("fake model unavailable")
        self._initialized = True

    async def close(self) -> None:
        await super().close()
        self.closed = True

    async def _embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        self.events.append(("embed", text))
        if text in self.fail_on:
            raise RuntimeError(f"backend rejected {text!r}")
        return fake_values(text, self._dims)


def fake_values(text: str, dimensions: int = 8) -> list[float]:
    """Deterministic values in [-1, 1] derived from the text."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [(digest[i % len(digest)] / 127.5) - 1.0 for i in range(dimensions)]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear store/embedding env vars, cached settings and the store singleton."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ENVIRONMENT", "development")
    get_settings.cache_clear()
    reset_vector_store()
    yield
    get_settings.cache_clear()
    reset_vector_store()


@pytest.fixture
def store_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Provide the three required store variables."""
    monkeypatch.setenv("QDRANT_URL", "http://qdrant.test:6333")
    monkeypatch.setenv("QDRANT_API_KEY", "test-key")
    monkeypatch.setenv("QDRANT_COLLECTION_NAME", "questions")
    get_settings.cache_clear()


@pytest.fixture
def fake_engine() -> FakeEmbeddingEngine:
    """Uninitialized fake embedding engine."""
    return FakeEmbeddingEngine()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
