"""Indexing orchestrator: load rows, ensure the index, embed and upsert in batches."""

from collections.abc import Callable, Sequence
from pathlib import Path

from vector_indexer.batching import batch_count, validate_batch_size
from vector_indexer.documents.loader import CSVRowLoader, RowLoader
from vector_indexer.documents.models import Document, Row
from vector_indexer.embeddings.models import Vector
from vector_indexer.embeddings.service import EmbeddingEngine
from vector_indexer.exceptions import InvalidColumnError, UpsertError
from vector_indexer.indexing.models import IndexingReport, IndexingState
from vector_indexer.logging_config import get_logger
from vector_indexer.vectorstore.service import VectorStore

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


class IndexingPipeline:
    """Drives rows through the embedding engine into the vector store.

    Batches are embedded and written one at a time; a failure stops the run
    and leaves already written batches in the store.
    """

    def __init__(
        self,
        embedding_engine: EmbeddingEngine,
        vector_store: VectorStore,
        index_name: str,
        namespace: str | None = None,
        batch_size: int = 1000,
        loader: RowLoader | None = None,
    ) -> None:
        """Initialize the indexing pipeline.

        Args:
            embedding_engine: Engine used to embed texts.
            vector_store: Store receiving the vectors.
            index_name: Name of the target index.
            namespace: Optional namespace within the index.
            batch_size: Documents per embedding batch.
            loader: Row loader for `run`. Defaults to CSV.
        """
        self._engine = embedding_engine
        self._store = vector_store
        self._index_name = index_name
        self._namespace = namespace
        self._batch_size = batch_size
        self._loader = loader or CSVRowLoader()
        self._state = IndexingState.IDLE

    @property
    def state(self) -> IndexingState:
        """Current state of the run."""
        return self._state

    def _transition(self, state: IndexingState) -> None:
        logger.debug(f"Indexing state {self._state.value} -> {state.value}")
        self._state = state

    async def run(
        self,
        source: str | Path,
        column: str,
        on_progress: ProgressCallback | None = None,
    ) -> IndexingReport:
        """Index one column of a tabular source.

        Args:
            source: Path to the input file.
            column: Column holding the text to embed.
            on_progress: Called with the running count of stored documents.

        Returns:
            Report of the completed run.

        Raises:
            InvalidArgumentError: If the batch size is not positive.
            DocumentError: If the source cannot be read.
            InvalidColumnError: If the header or a row lacks ``column``.
            VectorIndexerError: Any embedding or store failure.
        """
        self._transition(IndexingState.LOADING_INPUT)
        try:
            validate_batch_size(self._batch_size)
            table = self._loader.load(source)
        except Exception:
            self._transition(IndexingState.FAILED)
            raise
        return await self.index_rows(
            table.rows, column, on_progress=on_progress, columns=table.columns
        )

    async def index_rows(
        self,
        rows: Sequence[Row],
        column: str,
        on_progress: ProgressCallback | None = None,
        columns: Sequence[str] | None = None,
    ) -> IndexingReport:
        """Index one column of already loaded rows.

        The batch size and the column are validated before the index is
        touched, so bad input causes no embedding calls and no writes.

        Args:
            rows: Rows in source order.
            column: Column holding the text to embed.
            on_progress: Called with the running count of stored documents.
            columns: Declared schema of the source. Without it the schema is
                taken from the rows, and an empty input has no columns.
        """
        self._transition(IndexingState.LOADING_INPUT)
        report = IndexingReport(index=self._index_name, namespace=self._namespace)

        try:
            validate_batch_size(self._batch_size)
            documents = self._documents(rows, column, columns)
            report.skipped_rows = len(rows) - len(documents)

            self._transition(IndexingState.ENSURING_INDEX)
            if not self._engine.is_initialized:
                await self._engine.init()
            dimensions = self._engine.dimensions
            report.index_created = await self._store.create_index_if_not_exists(
                self._index_name, dimensions
            )
            if not report.index_created:
                await self._store.validate_dimensions(self._index_name, dimensions)

            self._transition(IndexingState.EMBEDDING)
            logger.info(
                f"Indexing {len(documents)} documents into {self._index_name}",
                extra={
                    "documents": len(documents),
                    "batches": batch_count(len(documents), self._batch_size),
                    "namespace": self._namespace,
                },
            )

            async def store_batch(vectors: list[Vector]) -> None:
                offset = report.documents_processed
                for document, vector in zip(documents[offset:], vectors):
                    vector.metadata["row_id"] = document.id

                result = await self._store.chunked_upsert(
                    self._index_name, vectors, namespace=self._namespace
                )
                if not result.succeeded:
                    raise UpsertError(
                        f"{len(result.failed_ids)} of {result.total} vectors "
                        f"in batch {report.batches} were not stored",
                        details={
                            "batch": report.batches,
                            "failed_batches": [f.batch_index for f in result.failures],
                            "errors": [f.error for f in result.failures],
                        },
                    )

                report.documents_processed += len(vectors)
                report.batches += 1
                if on_progress is not None:
                    on_progress(report.documents_processed)

            await self._engine.embed_batch(
                [document.text for document in documents],
                self._batch_size,
                store_batch,
            )
        except Exception as e:
            self._transition(IndexingState.FAILED)
            logger.error(
                f"Indexing failed: {e}",
                extra={"index": self._index_name, "documents_processed": report.documents_processed},
            )
            raise

        self._transition(IndexingState.DONE)
        logger.info(
            f"Indexed {report.documents_processed} documents",
            extra={"index": self._index_name, "batches": report.batches},
        )
        return report

    def _documents(
        self,
        rows: Sequence[Row],
        column: str,
        columns: Sequence[str] | None,
    ) -> list[Document]:
        """Validate ``column`` against the schema and every row, then build
        documents from non-blank cells.

        Raises:
            InvalidColumnError: If the schema or any row lacks the column.
        """
        if columns is not None or not rows:
            schema = list(columns or [])
            if column not in schema:
                raise InvalidColumnError(
                    f"Column '{column}' not found in input",
                    details={"column": column, "row": None, "available": sorted(schema)},
                )

        for position, row in enumerate(rows):
            if column not in row:
                raise InvalidColumnError(
                    f"Column '{column}' not found in input",
                    details={
                        "column": column,
                        "row": position,
                        "available": sorted(str(key) for key in row),
                    },
                )

        documents = [Document.from_row(row, column, str(position)) for position, row in enumerate(rows)]
        kept = [document for document in documents if document.text.strip()]
        if len(kept) != len(documents):
            logger.warning(
                f"Skipping {len(documents) - len(kept)} rows with blank '{column}'",
                extra={"column": column},
            )
        return kept
