"""Document data models."""

from typing import Any

from pydantic import BaseModel, Field

Row = dict[str, Any]


class Document(BaseModel):
    """A text to be embedded, produced from one input row.

    Attributes:
        id: Identifier of the source row.
        text: The text to embed.
    """

    id: str = Field(description="Source row identifier")
    text: str = Field(description="Text content to embed")

    @classmethod
    def from_row(cls, row: Row, column: str, row_id: str) -> "Document":
        """Create a document from one column of an input row.

        Args:
            row: Mapping of column name to value.
            column: Column holding the text.
            row_id: Identifier for the row.

        Returns:
            New Document instance.
        """
        value = row[column]
        return cls(id=row_id, text="" if value is None else str(value))


class Table(BaseModel):
    """Rows loaded from a tabular source together with its header.

    Attributes:
        columns: Column names declared by the source, in order.
        rows: Rows in source order.
    """

    columns: list[str] = Field(default_factory=list, description="Declared column names")
    rows: list[Row] = Field(default_factory=list, description="Rows in source order")
