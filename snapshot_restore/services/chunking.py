"""Chunked work execution shared by the file copy and table restore steps."""
from typing import Callable, Optional, Sequence, TypeVar

from ..core.logging import get_logger
from ..domain.models import Chunk, ChunkResult, ProgressReport

logger = get_logger(__name__)

T = TypeVar("T")

# Progress bands (base, weight) in percent
EXTRACT_PERCENTAGE = 5
FILES_BAND = (5, 45)
TABLES_BAND = (50, 45)
FINALIZE_PERCENTAGE = 95


def run_chunk(
    items: Sequence[T],
    chunk_index: int,
    chunk_size: int,
    apply: Callable[[T], bool]
) -> ChunkResult:
    """Apply a callable to one window of an ordered item list.

    The window is ``items[chunk_index * chunk_size : +chunk_size]``. Items are
    processed in order and the first failing item aborts the rest of the
    window.

    Args:
        items: Full ordered item list; must be identical between invocations
        chunk_index: Zero-based chunk number
        chunk_size: Items per chunk
        apply: Callable returning True on success

    Returns:
        ChunkResult; an empty list with an empty window is a failure
    """
    chunk = Chunk(chunk_index, chunk_size)
    total = len(items)
    selected = list(items[chunk.offset:chunk.offset + chunk.size])
    is_final = chunk.offset + chunk.size >= total

    if not selected and not total:
        logger.error("Nothing to process: the source list is empty")
        return ChunkResult(processed=[], status=False, is_final=is_final, offset=chunk.offset, total=total)

    processed = []
    for item in selected:
        if not apply(item):
            logger.error(f"Chunk {chunk.index} stopped at item {chunk.offset + len(processed)}: {item}")
            return ChunkResult(
                processed=processed,
                status=False,
                is_final=is_final,
                offset=chunk.offset,
                total=total,
                failed_item=item,
            )
        processed.append(item)

    logger.debug(f"Chunk {chunk.index}: processed {len(processed)} of {total} items from offset {chunk.offset}")
    return ChunkResult(processed=processed, status=True, is_final=is_final, offset=chunk.offset, total=total)


def phase_percentage(
    processed_count: int,
    total: int,
    chunk_index: int,
    base: float,
    weight: float,
    chunk_processed: Optional[int] = None
) -> float:
    """Map progress inside one phase onto its band of the overall bar.

    Args:
        processed_count: Items done so far in the phase, across chunks
        total: Items in the phase
        chunk_index: Chunk that was just run
        base: Where the phase starts, in percent
        weight: Width of the phase, in percent
        chunk_processed: Items the chunk itself finished, if known

    Returns:
        Percentage within ``[base, base + weight]``
    """
    if total <= 0:
        return float(base + weight)
    contribution = (processed_count * weight) / total
    # A chunk past the first that did nothing sits at the end of the band
    if chunk_processed == 0 and chunk_index >= 1:
        contribution = weight
    contribution = max(0.0, min(float(weight), contribution))
    return float(base + contribution)


def chunk_progress(result: ChunkResult, chunk_index: int, band: tuple, action: str) -> ProgressReport:
    """Progress report for a finished chunk within the given band.

    A failed chunk reports where it stopped.
    """
    base, weight = band
    done = result.offset + len(result.processed)
    chunk_processed = len(result.processed) if result.status else None
    return ProgressReport(
        percentage=phase_percentage(done, result.total, chunk_index, base, weight, chunk_processed),
        action=action,
    )
