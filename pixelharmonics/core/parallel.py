"""
Row-chunked execution for per-pixel reductions

The raster is split into horizontal strips. A worker function receives the
row slice of its strip and writes only into that slice of the caller's
output arrays, so strips never share mutable state and need no locking.
"""

import logging
import os
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TypeVar

from pixelharmonics.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def row_chunks(n_rows: int, chunk_rows: int) -> list[slice]:
    """
    Partition ``n_rows`` into consecutive slices of at most ``chunk_rows``

    Examples:
        >>> row_chunks(5, 2)
        [slice(0, 2, None), slice(2, 4, None), slice(4, 5, None)]
    """
    if chunk_rows < 1:
        raise ConfigurationError(f"chunk_rows must be >= 1, got {chunk_rows}")
    return [slice(start, min(start + chunk_rows, n_rows)) for start in range(0, n_rows, chunk_rows)]


def resolve_workers(workers: int | None) -> int:
    """Map ``None`` to the CPU count and validate explicit values"""
    if workers is None:
        return os.cpu_count() or 1
    if workers < 1:
        raise ConfigurationError(f"workers must be >= 1, got {workers}")
    return workers


def run_row_chunks(
    func: Callable[[slice], T],
    n_rows: int,
    chunk_rows: int = 256,
    workers: int | None = 1,
) -> list[T]:
    """
    Run ``func`` once per row strip

    numpy releases the GIL inside its linear algebra and reduction kernels,
    so strips run on a thread pool. Exceptions raised by a worker propagate
    to the caller.

    Args:
        func: Worker taking the row slice of its strip
        n_rows: Number of raster rows
        chunk_rows: Rows per strip
        workers: Thread count (1 = run inline, None = CPU count)

    Returns:
        Worker results in strip order
    """
    chunks = row_chunks(n_rows, chunk_rows)
    workers = resolve_workers(workers)

    if workers == 1 or len(chunks) <= 1:
        return [func(rows) for rows in chunks]

    logger.debug("Processing %d row chunks on %d threads", len(chunks), workers)
    results: dict[int, T] = {}
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(func, rows): i for i, rows in enumerate(chunks)}
        for future in as_completed(futures):
            results[futures[future]] = future.result()

    return [results[i] for i in range(len(chunks))]
