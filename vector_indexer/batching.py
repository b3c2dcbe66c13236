"""Splitting ordered sequences into fixed-size contiguous groups."""

from collections.abc import Iterator, Sequence
from typing import TypeVar

from vector_indexer.exceptions import InvalidArgumentError

T = TypeVar("T")


def validate_batch_size(size: int) -> int:
    """Return ``size`` if it is a usable batch size.

    Raises:
        InvalidArgumentError: If size is not a positive integer.
    """
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise InvalidArgumentError(
            f"Batch size must be a positive integer, got {size!r}",
            details={"size": size},
        )
    return size


def batched(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Lazily yield contiguous slices of ``items``.

    Every slice has ``size`` elements except possibly the last one.
    The size is validated eagerly, before any slice is produced.

    Args:
        items: Ordered sequence to split.
        size: Number of elements per slice.

    Returns:
        Iterator over the slices.

    Raises:
        InvalidArgumentError: If size is not a positive integer.
    """
    return _slices(items, validate_batch_size(size))


def _slices(items: Sequence[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def batch_count(total: int, size: int) -> int:
    """Number of slices ``batched`` produces for ``total`` items.

    Raises:
        InvalidArgumentError: If size is not a positive integer.
    """
    return -(-total // validate_batch_size(size))
