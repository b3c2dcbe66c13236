"""Command-line entry point.

Usage:
    vector-indexer index data/questions.csv --column question1
    vector-indexer query "how do I learn python" --top-k 5
"""

import argparse
import asyncio
import sys
from pathlib import Path

from tqdm import tqdm

from vector_indexer.batching import validate_batch_size
from vector_indexer.config import Settings, get_settings
from vector_indexer.embeddings.service import create_embedding_engine
from vector_indexer.exceptions import VectorIndexerError
from vector_indexer.indexing.models import IndexingReport
from vector_indexer.indexing.pipeline import IndexingPipeline
from vector_indexer.logging_config import get_logger, setup_logging
from vector_indexer.retrieval.pipeline import QueryPipeline
from vector_indexer.vectorstore.models import Match
from vector_indexer.vectorstore.service import close_vector_store, get_vector_store

logger = get_logger(__name__)


async def run_index(
    settings: Settings,
    source: Path,
    column: str,
    batch_size: int | None = None,
    namespace: str | None = None,
) -> IndexingReport:
    """Index one column of a CSV file, rendering progress with tqdm."""
    index_name = settings.require_store_config()
    if batch_size is None:
        batch_size = settings.embedding.batch_size
    validate_batch_size(batch_size)

    engine = create_embedding_engine(settings.embedding)
    pipeline = IndexingPipeline(
        embedding_engine=engine,
        vector_store=get_vector_store(settings.qdrant),
        index_name=index_name,
        namespace=namespace or settings.qdrant.namespace,
        batch_size=batch_size,
    )

    with tqdm(desc="Indexing", unit="docs") as progress:

        def on_progress(processed: int) -> None:
            progress.update(processed - progress.n)

        try:
            return await pipeline.run(source, column, on_progress=on_progress)
        finally:
            await engine.close()
            await close_vector_store()


async def run_query(
    settings: Settings,
    text: str,
    top_k: int,
    namespace: str | None = None,
) -> list[Match]:
    """Run one similarity query."""
    try:
        return await QueryPipeline(settings=settings).run(text, top_k=top_k, namespace=namespace)
    finally:
        await close_vector_store()


def print_matches(matches: list[Match]) -> None:
    """Print matches, best first."""
    if not matches:
        print("No matches found.")
        return
    for rank, match in enumerate(matches, start=1):
        text = match.metadata.get("text", "")
        print(f"{rank:>3}. [{match.score:.4f}] {text}  ({match.id})")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="vector-indexer",
        description="Index text into a vector store and query it",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser(
        "index",
        help="Embed one column of a CSV file and upsert it",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    index_parser.add_argument("source", type=Path, help="Path to the CSV file")
    index_parser.add_argument(
        "--column",
        "-c",
        required=True,
        help="Column holding the text to embed",
    )
    index_parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Documents per embedding batch (default from EMBEDDING_BATCH_SIZE)",
    )
    index_parser.add_argument("--namespace", default=None, help="Target namespace")

    query_parser = subparsers.add_parser(
        "query",
        help="Find the stored texts most similar to a query",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    query_parser.add_argument("text", help="Query text")
    query_parser.add_argument(
        "--top-k",
        "-k",
        type=int,
        default=10,
        help="Number of matches to return",
    )
    query_parser.add_argument("--namespace", default=None, help="Namespace to search")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(level=args.log_level or settings.log_level)

    try:
        if args.command == "index":
            report = asyncio.run(
                run_index(
                    settings,
                    source=args.source,
                    column=args.column,
                    batch_size=args.batch_size,
                    namespace=args.namespace,
                )
            )
            print(f"Indexed {report.documents_processed} documents into {report.index}.")
        else:
            matches = asyncio.run(
                run_query(settings, text=args.text, top_k=args.top_k, namespace=args.namespace)
            )
            print_matches(matches)
    except VectorIndexerError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error [{e.code.value}]: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
