from __future__ import annotations
from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive fixed-size slices; the last one may be shorter."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def numbered_lines(content: str, limit: int) -> str:
    """Prefix the first `limit` lines with 1-based line numbers."""
    lines = content.split("\n")[:limit]
    return "\n".join(f"{idx}: {line}" for idx, line in enumerate(lines, start=1))
