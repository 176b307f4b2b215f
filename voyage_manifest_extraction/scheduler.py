from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from .errors import ChunkExtractionFailure, CredentialError
from .progress import ProgressTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ChunkResult:
    """Outcome of one chunk: its rows, or the failure that left it empty."""

    index: int
    rows: List[Any] = field(default_factory=list)
    failure: Optional[ChunkExtractionFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def partition(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into contiguous chunks of at most `size`, preserving order."""
    if size < 1:
        raise ValueError(f"Chunk size must be at least 1, got {size}")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


async def _settle(
    index: int,
    chunk: List[T],
    worker: Callable[[List[T]], Awaitable[List[Any]]],
    tracker: Optional[ProgressTracker],
    label: str,
) -> ChunkResult:
    try:
        rows = await worker(chunk)
        return ChunkResult(index=index, rows=list(rows))
    except Exception as exc:
        failure = ChunkExtractionFailure(label, index, exc)
        logger.warning("%s", failure)
        return ChunkResult(index=index, failure=failure)
    finally:
        if tracker is not None:
            tracker.complete_unit()


async def gather_chunks(
    chunks: Sequence[List[T]],
    worker: Callable[[List[T]], Awaitable[List[Any]]],
    *,
    tracker: Optional[ProgressTracker] = None,
    label: str = "chunk",
) -> List[ChunkResult]:
    """
    Run `worker` on every chunk concurrently and wait for all of them to settle.

    A failing chunk never aborts the others: it yields an empty result holding
    its failure. Results come back in chunk index order. A rejected credential
    is the one failure that is re-raised, after every chunk has settled.
    """
    results = await asyncio.gather(
        *(_settle(index, chunk, worker, tracker, label) for index, chunk in enumerate(chunks))
    )
    for result in results:
        if result.failure is not None and isinstance(result.failure.cause, CredentialError):
            raise result.failure.cause
    return list(results)


def flatten(results: Sequence[ChunkResult]) -> List[Any]:
    rows: List[Any] = []
    for result in sorted(results, key=lambda r: r.index):
        rows.extend(result.rows)
    return rows


def failed_count(results: Sequence[ChunkResult]) -> int:
    return sum(1 for result in results if not result.ok)
