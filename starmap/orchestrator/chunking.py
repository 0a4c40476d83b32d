"""Deterministic partitioning of work items into bounded chunks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

from ..config import DEFAULT_CHUNK_SIZE
from ..errors import ConfigError


@dataclass(frozen=True)
class Chunk:
    """An ordered slice of system ids dispatched as one job."""

    index: int
    items: Tuple[int, ...]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[int]:
        return iter(self.items)


def partition(items: Sequence[int], chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[Chunk]:
    """Split ``items`` into consecutive chunks of at most ``chunk_size``.

    The concatenation of the returned chunks equals ``items``; only the last
    chunk may be shorter than ``chunk_size``.

    Raises:
        ConfigError: if ``chunk_size`` is not a positive integer.
    """

    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise ConfigError(f"chunk_size must be a positive integer, got {chunk_size!r}")

    ordered = tuple(items)
    return [
        Chunk(index=position, items=ordered[start : start + chunk_size])
        for position, start in enumerate(range(0, len(ordered), chunk_size))
    ]
