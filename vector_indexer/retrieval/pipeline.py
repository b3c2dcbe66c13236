"""Query orchestrator: embed a query text and fetch its nearest matches."""

from vector_indexer.config import Settings, get_settings
from vector_indexer.embeddings.service import EmbeddingEngine, create_embedding_engine
from vector_indexer.logging_config import get_logger
from vector_indexer.vectorstore.models import Match
from vector_indexer.vectorstore.service import VectorStore, get_vector_store

logger = get_logger(__name__)


class QueryPipeline:
    """Answers one similarity query per `run` call.

    Without an injected engine, each run builds, initializes and closes its
    own. An injected engine belongs to the caller and is only initialized if
    it has not been already.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        embedding_engine: EmbeddingEngine | None = None,
        vector_store: VectorStore | None = None,
    ) -> None:
        """Initialize the query pipeline.

        Args:
            settings: Application settings.
            embedding_engine: Shared engine (optional).
            vector_store: Vector store (defaults to the process-wide client).
        """
        self._settings = settings or get_settings()
        self._engine = embedding_engine
        self._store = vector_store

    async def run(
        self,
        text: str,
        top_k: int = 10,
        namespace: str | None = None,
    ) -> list[Match]:
        """Return up to ``top_k`` matches for ``text``, best first.

        Args:
            text: Query text.
            top_k: Maximum number of matches.
            namespace: Namespace to search; defaults to the configured one.

        Returns:
            Matches ordered by decreasing score.

        Raises:
            ConfigurationError: If store configuration is missing.
            ModelInitError: If the embedding model cannot be loaded.
            EmbeddingError: If the query text cannot be embedded.
            QueryError: If the store query fails.
        """
        index = self._settings.require_store_config()
        namespace = namespace or self._settings.qdrant.namespace

        store = self._store or get_vector_store(self._settings.qdrant)
        owns_engine = self._engine is None
        engine = self._engine or create_embedding_engine(self._settings.embedding)

        try:
            if not engine.is_initialized:
                await engine.init()
            vector = await engine.embed(text)
            matches = await store.query(
                index,
                vector.values,
                top_k=top_k,
                namespace=namespace,
                include_metadata=True,
            )
        finally:
            if owns_engine:
                await engine.close()

        logger.info(
            f"Query returned {len(matches)} matches",
            extra={
                "index": index,
                "top_k": top_k,
                "top_score": matches[0].score if matches else None,
            },
        )
        return matches
