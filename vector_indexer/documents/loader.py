"""Tabular input loaders."""

import csv
from abc import ABC, abstractmethod
from pathlib import Path

from vector_indexer.documents.models import Table
from vector_indexer.exceptions import DocumentError, ErrorCode
from vector_indexer.logging_config import get_logger

logger = get_logger(__name__)

EXTRA_FIELDS_KEY = "_extra"


class RowLoader(ABC):
    """Abstract base class for row loaders.

    Defines the interface for reading ordered rows from a tabular source.
    """

    @abstractmethod
    def load(self, source: str | Path) -> Table:
        """Load the header and all rows from a source.

        Args:
            source: Path or identifier for the tabular source.

        Returns:
            Table with the declared columns and rows in source order.

        Raises:
            DocumentError: If loading fails.
        """
        ...


class CSVRowLoader(RowLoader):
    """Loader for comma-separated files with a header row."""

    def __init__(self, encoding: str = "utf-8", delimiter: str = ",") -> None:
        """Initialize the CSV loader.

        Args:
            encoding: Text encoding to use when reading files.
            delimiter: Field delimiter.
        """
        self.encoding = encoding
        self.delimiter = delimiter

    def load(self, source: str | Path) -> Table:
        """Read the header and every row of a CSV file.

        Args:
            source: Path to the CSV file.

        Returns:
            Table whose columns come from the header row. An empty file has
            no columns.

        Raises:
            DocumentError: If the file is missing or cannot be parsed.
        """
        path = Path(source)

        if not path.exists():
            raise DocumentError(
                f"File not found: {path}",
                code=ErrorCode.DOCUMENT_NOT_FOUND,
                details={"path": str(path)},
            )

        if not path.is_file():
            raise DocumentError(
                f"Not a file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path)},
            )

        try:
            with path.open(encoding=self.encoding, newline="") as handle:
                reader = csv.DictReader(handle, delimiter=self.delimiter, restkey=EXTRA_FIELDS_KEY)
                # Short rows leave missing columns as None; long rows spill into EXTRA_FIELDS_KEY
                rows = [dict(row) for row in reader]
                columns = list(reader.fieldnames or [])
        except UnicodeDecodeError as e:
            raise DocumentError(
                f"Failed to decode file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path), "encoding": self.encoding, "error": str(e)},
            ) from e
        except (OSError, csv.Error) as e:
            raise DocumentError(
                f"Failed to read file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path), "error": str(e)},
            ) from e

        logger.info(f"Loaded {len(rows)} rows from {path}", extra={"columns": columns})
        return Table(columns=columns, rows=rows)
