"""
Chunk quality evaluation tools.

Helps tune chunking parameters by measuring:
- Size distribution against the configured word bounds
- Overlap fidelity between split pieces
- Coherence (from a batch coherence result)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from shared.schemas import BatchCoherenceResult, Chunk, ChunkMethod

from .semantic_chunker import SPLIT_OVERLAP_WORDS

logger = logging.getLogger(__name__)


@dataclass
class ChunkQualityReport:
    """Report on chunk quality metrics."""

    total_chunks: int
    avg_words: float
    min_words: int
    max_words: int
    std_words: float
    chunks_too_small: int  # Below min_chunk_words
    chunks_too_large: int  # Above max_chunk_words
    merged_chunks: int
    split_chunks: int
    overlap_quality: float
    avg_coherence: Optional[float] = None
    recommendations: List[str] = field(default_factory=list)


def evaluate_overlap(chunks: Sequence[Chunk], overlap: int = SPLIT_OVERLAP_WORDS) -> float:
    """
    Fraction of consecutive split-piece pairs whose shared words line up.

    Only pairs of semantic_split pieces from the same parent range count.
    Returns 1.0 when there are no such pairs.
    """
    checks = []
    for previous, current in zip(chunks, chunks[1:]):
        if not (
            previous.method == ChunkMethod.SEMANTIC_SPLIT
            and current.method == ChunkMethod.SEMANTIC_SPLIT
            and previous.start_sentence == current.start_sentence
            and previous.end_sentence == current.end_sentence
        ):
            continue

        tail = previous.content.split()[-overlap:]
        head = current.content.split()[: len(tail)]
        checks.append(head == tail)

    if not checks:
        return 1.0
    return sum(checks) / len(checks)


def evaluate_chunk_quality(
    chunks: Sequence[Chunk],
    min_chunk_words: int = 50,
    max_chunk_words: int = 800,
    coherence: Optional[BatchCoherenceResult] = None,
) -> ChunkQualityReport:
    """
    Evaluate overall chunking quality.

    Args:
        chunks: Chunks from one chunking run, in order
        min_chunk_words: Minimum acceptable words
        max_chunk_words: Maximum acceptable words
        coherence: Optional batch coherence result for the same chunks

    Returns:
        ChunkQualityReport with metrics and recommendations
    """
    if not chunks:
        return ChunkQualityReport(
            total_chunks=0,
            avg_words=0,
            min_words=0,
            max_words=0,
            std_words=0,
            chunks_too_small=0,
            chunks_too_large=0,
            merged_chunks=0,
            split_chunks=0,
            overlap_quality=0,
            recommendations=["No chunks to evaluate"],
        )

    word_counts = [c.word_count for c in chunks]

    avg_words = float(np.mean(word_counts))
    std_words = float(np.std(word_counts))

    # The document tail may legitimately stay under the minimum
    too_small = sum(1 for w in word_counts[:-1] if w < min_chunk_words)
    too_large = sum(1 for w in word_counts if w > max_chunk_words)
    merged = sum(1 for c in chunks if c.method == ChunkMethod.SEMANTIC_MERGED)
    split = sum(1 for c in chunks if c.method == ChunkMethod.SEMANTIC_SPLIT)

    overlap_quality = evaluate_overlap(chunks)

    avg_coherence = None
    if coherence is not None and coherence.aggregate is not None:
        avg_coherence = coherence.aggregate.mean_coherence

    recommendations = []

    if split > len(chunks) * 0.25:
        recommendations.append(
            f"{split} chunks ({split/len(chunks)*100:.0f}%) were split on word boundaries. "
            "Consider lowering breakpoint_percentile_threshold to find more topic boundaries."
        )

    if merged > len(chunks) * 0.5:
        recommendations.append(
            f"{merged} chunks ({merged/len(chunks)*100:.0f}%) needed merging. "
            "Consider raising breakpoint_percentile_threshold or lowering min_chunk_words."
        )

    if too_small or too_large:
        recommendations.append(
            f"{too_small} chunks below {min_chunk_words} words and {too_large} above "
            f"{max_chunk_words} words. Check size bounds."
        )

    if avg_coherence is not None and avg_coherence < 0.5:
        recommendations.append(
            f"Low coherence score ({avg_coherence:.2f}). "
            "Chunks may span unrelated topics. Consider a larger buffer_size."
        )

    if overlap_quality < 1.0:
        recommendations.append(
            f"Split overlap quality {overlap_quality:.2f}: consecutive split pieces do not share "
            "their boundary words."
        )

    if not recommendations:
        recommendations.append("Chunking quality looks good!")

    logger.debug(f"Chunk quality evaluated for {len(chunks)} chunks")

    return ChunkQualityReport(
        total_chunks=len(chunks),
        avg_words=avg_words,
        min_words=int(min(word_counts)),
        max_words=int(max(word_counts)),
        std_words=std_words,
        chunks_too_small=too_small,
        chunks_too_large=too_large,
        merged_chunks=merged,
        split_chunks=split,
        overlap_quality=overlap_quality,
        avg_coherence=avg_coherence,
        recommendations=recommendations,
    )
