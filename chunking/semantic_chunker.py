"""
Semantic chunking at embedding-detected topic boundaries.

Instead of cutting at fixed token counts, the chunker:
1. Splits text into sentences
2. Embeds each sentence together with its neighbours (buffer context)
3. Measures cosine distance between adjacent windows
4. Breaks where the distance exceeds a percentile of all distances
5. Merges undersized chunks and splits oversized ones

Tuning:
- breakpoint_percentile_threshold: higher = fewer, larger chunks
- buffer_size: more context smooths distances on short sentences
- min/max_chunk_words: hard size bounds applied after detection

Texts with fewer than min_sentences_for_semantic sentences come back as one
single_chunk chunk; empty text comes back with no chunks at all.
"""

import asyncio
import logging
import time
from typing import List, Optional, Sequence

from embeddings.batch_iterator import EmbeddingBatchIterator
from embeddings.vector_math import adjacent_distances
from shared.schemas import (
    BatchCoherenceResult,
    BreakpointInfo,
    Chunk,
    ChunkCoherenceDetails,
    ChunkingResult,
    ChunkMetadata,
    ChunkMethod,
)

from .coherence_scorer import ChunkCoherenceScorer
from .config import ChunkerConfig, CoherenceConfig, split_overrides
from .sentence_splitter import build_combined_sentence, create_combined_sentences, split_into_sentences
from .stats import describe_distances, percentile_index

logger = logging.getLogger(__name__)

# Words shared by consecutive pieces of a split chunk
SPLIT_OVERLAP_WORDS = 30


def find_breakpoints(distances: Sequence[float], percentile_threshold: float) -> List[int]:
    """
    Find topic boundaries in a distance sequence.

    The threshold is the sorted distance at floor(p/100 * (n-1)), with no
    interpolation. Only distances strictly greater than it break, so
    uniform sequences produce no breakpoints.

    Args:
        distances: Adjacent-window distances
        percentile_threshold: Percentile in (0, 100)

    Returns:
        Ascending indices i where a chunk ends after sentence i
    """
    if len(distances) == 0:
        return []

    sorted_distances = sorted(distances)
    threshold = sorted_distances[percentile_index(len(sorted_distances), percentile_threshold)]

    return [i for i, distance in enumerate(distances) if distance > threshold]


def create_chunks_from_breakpoints(sentences: Sequence[str], breakpoints: Sequence[int]) -> List[Chunk]:
    """
    Slice sentences into chunks ending at each breakpoint (inclusive).

    The last sentence is an implicit final breakpoint, so coverage is
    exhaustive and non-overlapping.
    """
    chunks = []
    start = 0

    for breakpoint in [*breakpoints, len(sentences) - 1]:
        end = breakpoint + 1
        chunk_sentences = sentences[start:end]

        if chunk_sentences:
            chunks.append(
                Chunk(
                    content=" ".join(chunk_sentences).strip(),
                    sentence_count=len(chunk_sentences),
                    start_sentence=start,
                    end_sentence=end - 1,
                    method=ChunkMethod.SEMANTIC,
                )
            )

        start = end

    return chunks


def split_large_chunk(
    chunk: Chunk, max_words: int, overlap: int = SPLIT_OVERLAP_WORDS
) -> List[Chunk]:
    """
    Split an oversized chunk into word windows of ``max_words``.

    Consecutive pieces share ``overlap`` words. Pieces are not sentence
    aligned, so their sentence_count is -1 and they keep the parent's
    sentence range.
    """
    words = chunk.content.split()
    # Overlap must leave room to advance or the loop would stall
    overlap = max(0, min(overlap, max_words - 1))
    pieces = []

    start = 0
    while start < len(words):
        end = min(start + max_words, len(words))
        pieces.append(
            Chunk(
                content=" ".join(words[start:end]),
                sentence_count=-1,
                start_sentence=chunk.start_sentence,
                end_sentence=chunk.end_sentence,
                method=ChunkMethod.SEMANTIC_SPLIT,
            )
        )

        if end >= len(words):
            break

        start = end - overlap
        # Unreachable while overlap < max_words
        if start <= 0 or start >= len(words):
            break

    return pieces


def post_process_chunks(
    chunks: Sequence[Chunk],
    min_words: int,
    max_words: int,
    overlap: int = SPLIT_OVERLAP_WORDS,
) -> List[Chunk]:
    """
    Enforce chunk size bounds in one left-to-right pass.

    - Chunks under ``min_words`` open an accumulator that absorbs following
      chunks until it reaches ``min_words``
    - Chunks over ``max_words`` are split with word overlap
    - An accumulator is flushed as is once it reaches ``min_words``, even if
      the last absorbed chunk pushed it over ``max_words``
    - The final accumulator is flushed as is, so the document tail may stay
      under ``min_words``
    """
    processed: List[Chunk] = []
    current: Optional[Chunk] = None

    for chunk in chunks:
        if current is not None:
            if current.word_count < min_words:
                current = Chunk(
                    content=f"{current.content} {chunk.content}",
                    sentence_count=current.sentence_count + chunk.sentence_count,
                    start_sentence=current.start_sentence,
                    end_sentence=chunk.end_sentence,
                    method=ChunkMethod.SEMANTIC_MERGED,
                )
                continue

            processed.append(current)
            current = None

        word_count = chunk.word_count

        if word_count < min_words:
            current = chunk
            continue

        if word_count > max_words:
            processed.extend(split_large_chunk(chunk, max_words, overlap))
            continue

        processed.append(chunk)

    if current is not None:
        processed.append(current)

    return processed


class SemanticChunker:
    """
    Embedding-driven topic chunker.

    Usage:
        chunker = SemanticChunker(provider)
        result = await chunker.chunk_text(document_text)

        # Per-call overrides
        result = await chunker.chunk_text(text, breakpoint_percentile_threshold=90)

        # With coherence scores on every chunk
        result = await chunker.chunk_text_with_coherence(text)
    """

    def __init__(
        self,
        provider,
        config: Optional[ChunkerConfig] = None,
        coherence_config: Optional[CoherenceConfig] = None,
    ):
        """
        Args:
            provider: Embedding provider exposing get_embeddings(texts)
            config: Chunker configuration (defaults if omitted)
            coherence_config: Scorer configuration for chunk_text_with_coherence
        """
        self.provider = provider
        self.config = config or ChunkerConfig()
        self.coherence_config = coherence_config or CoherenceConfig()

    async def chunk_text(
        self,
        text: str,
        cancel_event: Optional[asyncio.Event] = None,
        **overrides,
    ) -> ChunkingResult:
        """
        Split text into semantically coherent chunks.

        Args:
            text: Document text
            cancel_event: Checked between embedding batches
            **overrides: ChunkerConfig fields to override for this call

        Returns:
            ChunkingResult with chunks and run metadata
        """
        config = self.config.with_overrides(**overrides)
        start_time = time.perf_counter()

        sentences = split_into_sentences(text)

        logger.debug(
            f"Semantic chunking: {len(sentences)} sentences, "
            f"{len(text) if isinstance(text, str) else 0} chars"
        )

        if len(sentences) < config.min_sentences_for_semantic:
            return self._single_chunk_result(text, sentences, config, start_time)

        distances = await self.calculate_distances_streaming(sentences, config, cancel_event)
        breakpoints = find_breakpoints(distances, config.breakpoint_percentile_threshold)
        distance_stats = describe_distances(distances)

        logger.debug(
            f"Semantic chunking: {len(breakpoints)} breakpoints at "
            f"p{config.breakpoint_percentile_threshold} "
            f"(mean={distance_stats.mean}, max={distance_stats.max:.4f})"
        )

        raw_chunks = create_chunks_from_breakpoints(sentences, breakpoints)
        chunks = post_process_chunks(raw_chunks, config.min_chunk_words, config.max_chunk_words)

        processing_time_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            f"Semantic chunking completed: {len(sentences)} sentences, "
            f"{len(breakpoints)} breakpoints, {len(chunks)} chunks "
            f"in {processing_time_ms:.1f}ms"
        )

        return ChunkingResult(
            chunks=chunks,
            metadata=ChunkMetadata(
                method=ChunkMethod.SEMANTIC,
                total_sentences=len(sentences),
                breakpoints=[BreakpointInfo(index=bp, distance=distances[bp]) for bp in breakpoints],
                distance_stats=distance_stats,
                processing_time_ms=processing_time_ms,
                config=config.to_dict(),
            ),
        )

    def _single_chunk_result(
        self,
        text: str,
        sentences: List[str],
        config: ChunkerConfig,
        start_time: float,
    ) -> ChunkingResult:
        """Whole text as one chunk; no chunks at all for empty text."""
        chunks = []
        if sentences:
            chunks.append(
                Chunk(
                    content=text.strip(),
                    sentence_count=len(sentences),
                    start_sentence=0,
                    end_sentence=len(sentences) - 1,
                    method=ChunkMethod.SINGLE_CHUNK,
                )
            )

        return ChunkingResult(
            chunks=chunks,
            metadata=ChunkMetadata(
                method=ChunkMethod.SINGLE_CHUNK,
                total_sentences=len(sentences),
                breakpoints=[],
                processing_time_ms=(time.perf_counter() - start_time) * 1000,
                config=config.to_dict(),
            ),
        )

    async def calculate_distances_streaming(
        self,
        sentences: Sequence[str],
        config: Optional[ChunkerConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[float]:
        """
        Distances between adjacent context windows, embedded in batches.

        Windows are built per batch and only the previous vector is kept
        across batches.
        """
        config = config or self.config
        iterator = EmbeddingBatchIterator(
            self.provider,
            batch_size=config.embedding_batch_size,
            cancel_event=cancel_event,
        )
        return await iterator.stream_adjacent_distances(
            len(sentences),
            lambda i: build_combined_sentence(sentences, i, config.buffer_size),
        )

    @staticmethod
    def calculate_distances(embeddings: Sequence[Sequence[float]]) -> List[float]:
        """Adjacent distances over an in-memory embedding matrix."""
        return adjacent_distances(embeddings)

    @staticmethod
    def create_combined_sentences(sentences: Sequence[str], buffer_size: int) -> List[str]:
        """All context windows at once (debugging and inspection)."""
        return create_combined_sentences(sentences, buffer_size)

    async def calculate_chunk_coherence(
        self,
        chunks: Sequence,
        cancel_event: Optional[asyncio.Event] = None,
        **overrides,
    ) -> BatchCoherenceResult:
        """Score every chunk with the coherence scorer."""
        scorer = ChunkCoherenceScorer(self.provider, self.coherence_config)
        return await scorer.calculate_batch_coherence(chunks, cancel_event=cancel_event, **overrides)

    async def chunk_text_with_coherence(
        self,
        text: str,
        cancel_event: Optional[asyncio.Event] = None,
        **overrides,
    ) -> ChunkingResult:
        """
        Chunk text, then attach a coherence score to every chunk.

        Overrides may mix chunker and scorer options; each config takes
        the keys it knows.
        """
        chunker_overrides, coherence_overrides = split_overrides(overrides)

        result = await self.chunk_text(text, cancel_event=cancel_event, **chunker_overrides)
        coherence = await self.calculate_chunk_coherence(
            result.chunks, cancel_event=cancel_event, **coherence_overrides
        )

        chunks = [
            chunk.model_copy(
                update={
                    "coherence_score": score.overall_score,
                    "coherence_details": ChunkCoherenceDetails(
                        centroid_coherence=score.centroid_coherence,
                        pairwise_coherence=score.pairwise_coherence,
                        variance_score=score.variance_score,
                        method=score.method,
                    ),
                }
            )
            for chunk, score in zip(result.chunks, coherence.results)
        ]

        metadata = result.metadata.model_copy(
            update={
                "coherence": coherence.aggregate,
                "coherence_summary": coherence.summary,
            }
        )

        return ChunkingResult(chunks=chunks, metadata=metadata)


async def chunk_text(
    text: str,
    provider,
    config: Optional[ChunkerConfig] = None,
    cancel_event: Optional[asyncio.Event] = None,
    **overrides,
) -> ChunkingResult:
    """
    Chunk a document with a one-off chunker.

    Example:
        >>> result = await chunk_text(text, provider, max_chunk_words=400)
        >>> for chunk in result.chunks:
        ...     print(chunk.method, chunk.word_count)
    """
    chunker = SemanticChunker(provider, config=config)
    return await chunker.chunk_text(text, cancel_event=cancel_event, **overrides)


async def chunk_text_with_coherence(
    text: str,
    provider,
    config: Optional[ChunkerConfig] = None,
    coherence_config: Optional[CoherenceConfig] = None,
    cancel_event: Optional[asyncio.Event] = None,
    **overrides,
) -> ChunkingResult:
    """Chunk a document and score each chunk's coherence."""
    chunker = SemanticChunker(provider, config=config, coherence_config=coherence_config)
    return await chunker.chunk_text_with_coherence(text, cancel_event=cancel_event, **overrides)
