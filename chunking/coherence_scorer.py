"""
Chunk coherence scoring.

Three embedding signals, combined with configurable weights:
1. Centroid coherence: mean cosine similarity of each sentence to the
   chunk centroid (how tightly sentences cluster around one topic)
2. Pairwise coherence: mean cosine similarity over all sentence pairs
   (skipped above max_sentences_for_pairwise, O(n^2))
3. Variance score: exp(-10 * variance of centroid distances), so an even
   spread of sentences around the centroid scores close to 1

Interpretation of overall_score:
- >= 0.8 excellent, >= 0.6 good, >= 0.4 moderate, otherwise low
"""

import asyncio
import logging
import math
import time
from itertools import combinations
from typing import Any, Dict, List, Mapping, Optional, Sequence

from embeddings.batch_iterator import EmbeddingBatchIterator
from embeddings.vector_math import compute_centroid, cosine_similarity
from shared.exceptions import ChunkingCancelledError, ConfigurationError
from shared.schemas import (
    BatchCoherenceResult,
    Chunk,
    ChunkCoherenceResult,
    CoherenceAggregate,
    CoherenceDetails,
    CoherenceMethod,
    CoherenceResult,
    ConfidenceLevel,
    QuickCoherenceResult,
)

from .config import CoherenceConfig, CoherenceWeights
from .sentence_splitter import split_into_sentences
from .stats import mean, median, std_dev, variance

logger = logging.getLogger(__name__)

# Sensitivity of the variance score to spread in centroid distances
VARIANCE_SENSITIVITY = 10

LOW_COHERENCE_THRESHOLD = 0.4


def quality_label(score: float) -> str:
    """Bucket a coherence score."""
    if score >= 0.8:
        return "excellent"
    if score >= 0.6:
        return "good"
    if score >= 0.4:
        return "moderate"
    return "low"


def resolve_content(chunk: Any) -> Optional[str]:
    """Text of a chunk given as a string, Chunk, mapping or object with .content."""
    if isinstance(chunk, str):
        return chunk
    if isinstance(chunk, Chunk):
        return chunk.content
    if isinstance(chunk, Mapping):
        return chunk.get("content")
    return getattr(chunk, "content", None)


def centroid_coherence(embeddings: Sequence[Sequence[float]], centroid) -> Dict[str, Any]:
    """
    Similarity of each embedding to the centroid.

    Returns:
        Dict with score (mean similarity), distances (1 - similarity per
        sentence), std_dev of distances, min and max similarity
    """
    similarities = [cosine_similarity(embedding, centroid) for embedding in embeddings]
    distances = [1 - s for s in similarities]

    return {
        "score": mean(similarities),
        "std_dev": std_dev(distances),
        "distances": distances,
        "min": min(similarities),
        "max": max(similarities),
    }


def pairwise_coherence(embeddings: Sequence[Sequence[float]]) -> Dict[str, Any]:
    """Mean cosine similarity over all unordered pairs."""
    if len(embeddings) < 2:
        return {"score": 1.0, "min": 1.0, "max": 1.0}

    similarities = [cosine_similarity(a, b) for a, b in combinations(embeddings, 2)]

    return {
        "score": mean(similarities),
        "min": min(similarities),
        "max": max(similarities),
    }


def variance_score(distances: Sequence[float]) -> float:
    """Map distance variance to (0, 1]; lower variance scores higher."""
    if len(distances) < 2:
        return 1.0
    return math.exp(-VARIANCE_SENSITIVITY * variance(distances))


def combine_scores(
    centroid_score: float,
    pairwise_score: float,
    variance_value: float,
    weights: CoherenceWeights,
) -> float:
    """Weighted mean of the three signals, normalised by the weight sum and clamped to [0, 1]."""
    combined = (
        weights.centroid * centroid_score
        + weights.pairwise * pairwise_score
        + weights.variance * variance_value
    ) / weights.total
    return min(1.0, max(0.0, combined))


def sample_sentences(sentences: Sequence[str], sample_size: int) -> List[str]:
    """Pick ``sample_size`` sentences evenly spaced by index."""
    if len(sentences) <= sample_size:
        return list(sentences)

    step = len(sentences) / sample_size
    return [sentences[min(int(i * step), len(sentences) - 1)] for i in range(sample_size)]


def _insufficient_data_result(reason: str, sentence_count: int = 0) -> CoherenceResult:
    return CoherenceResult(
        overall_score=1.0 if sentence_count == 1 else None,
        details=CoherenceDetails(sentence_count=sentence_count, reason=reason),
        method=CoherenceMethod.INSUFFICIENT_DATA,
    )


class ChunkCoherenceScorer:
    """
    Scores how well the sentences of a chunk stick to one topic.

    Usage:
        scorer = ChunkCoherenceScorer(provider)
        result = await scorer.calculate_coherence(chunk)
        print(format_coherence_score(result))

        batch = await scorer.calculate_batch_coherence(chunks)
        print(batch.summary)
    """

    def __init__(self, provider, config: Optional[CoherenceConfig] = None):
        self.provider = provider
        self.config = config or CoherenceConfig()

    async def calculate_coherence(
        self,
        chunk: Any,
        cancel_event: Optional[asyncio.Event] = None,
        **overrides,
    ) -> CoherenceResult:
        """
        Calculate the coherence of a single chunk.

        Args:
            chunk: Chunk text, Chunk, or mapping with a 'content' key
            cancel_event: Checked between embedding batches
            **overrides: CoherenceConfig fields to override for this call

        Returns:
            CoherenceResult; insufficient_data for empty content or too few
            sentences (score 1.0 for exactly one sentence)
        """
        config = self.config.with_overrides(**overrides)
        content = resolve_content(chunk)

        if not content or not isinstance(content, str):
            return _insufficient_data_result("Empty or invalid content")

        start_time = time.perf_counter()
        sentences = split_into_sentences(content)

        if len(sentences) < config.min_sentences_for_coherence:
            return _insufficient_data_result(
                f"Only {len(sentences)} sentence(s), need at least "
                f"{config.min_sentences_for_coherence}",
                len(sentences),
            )

        iterator = EmbeddingBatchIterator(
            self.provider,
            batch_size=config.embedding_batch_size,
            cancel_event=cancel_event,
        )
        try:
            embeddings = await iterator.collect_vectors(sentences)
        except ChunkingCancelledError:
            raise
        except Exception as e:
            logger.error(f"Error calculating chunk coherence ({len(sentences)} sentences): {e}")
            raise

        centroid = compute_centroid(embeddings)
        centroid_result = centroid_coherence(embeddings, centroid)

        if len(sentences) <= config.max_sentences_for_pairwise:
            pairwise_result = pairwise_coherence(embeddings)
        else:
            pairwise_result = {"score": centroid_result["score"], "skipped": True}

        variance_value = variance_score(centroid_result["distances"])
        overall_score = combine_scores(
            centroid_result["score"],
            pairwise_result["score"],
            variance_value,
            config.weights,
        )

        processing_time_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(
            f"Chunk coherence: sentences={len(sentences)} overall={overall_score:.4f} "
            f"centroid={centroid_result['score']:.4f} "
            f"pairwise={pairwise_result['score']:.4f} variance={variance_value:.4f}"
        )

        return CoherenceResult(
            overall_score=overall_score,
            centroid_coherence=centroid_result["score"],
            pairwise_coherence=pairwise_result["score"],
            variance_score=variance_value,
            details=CoherenceDetails(
                sentence_count=len(sentences),
                centroid_distance_std_dev=centroid_result["std_dev"],
                min_similarity=pairwise_result.get("min", centroid_result["min"]),
                max_similarity=pairwise_result.get("max", centroid_result["max"]),
                pairwise_skipped=pairwise_result.get("skipped", False),
            ),
            method=CoherenceMethod.EMBEDDING_BASED,
            processing_time_ms=processing_time_ms,
        )

    async def calculate_batch_coherence(
        self,
        chunks: Optional[Sequence[Any]],
        cancel_event: Optional[asyncio.Event] = None,
        **overrides,
    ) -> BatchCoherenceResult:
        """
        Score chunks one after another and aggregate the embedding-based ones.

        Args:
            chunks: Chunk texts, Chunk objects or mappings
            cancel_event: Checked between embedding batches
            **overrides: CoherenceConfig fields to override for this call

        Returns:
            BatchCoherenceResult with per-chunk results, aggregate and summary
        """
        if not chunks:
            return BatchCoherenceResult(results=[], aggregate=None, summary="No chunks provided")

        start_time = time.perf_counter()
        results: List[ChunkCoherenceResult] = []

        for index, chunk in enumerate(chunks):
            result = await self.calculate_coherence(chunk, cancel_event=cancel_event, **overrides)
            results.append(ChunkCoherenceResult(chunk_index=index, **result.model_dump()))

        scores = [r.overall_score for r in results if r.method == CoherenceMethod.EMBEDDING_BASED]

        aggregate = None
        if scores:
            aggregate = CoherenceAggregate(
                mean_coherence=mean(scores),
                median_coherence=median(scores),
                min_coherence=min(scores),
                max_coherence=max(scores),
                std_dev_coherence=std_dev(scores),
                valid_chunks=len(scores),
                total_chunks=len(chunks),
            )

        processing_time_ms = (time.perf_counter() - start_time) * 1000

        mean_text = f"{aggregate.mean_coherence:.4f}" if aggregate else "n/a"
        logger.info(
            f"Batch chunk coherence: {len(scores)}/{len(chunks)} chunks scored, "
            f"mean={mean_text}, {processing_time_ms:.1f}ms"
        )

        return BatchCoherenceResult(
            results=results,
            aggregate=aggregate,
            summary=_batch_summary(aggregate),
            processing_time_ms=processing_time_ms,
        )

    async def quick_coherence_check(self, chunk: Any, sample_size: int = 5) -> QuickCoherenceResult:
        """
        Centroid-only coherence estimate on at most ``sample_size`` sentences.

        Confidence is high when every sentence was used, medium when sampled,
        low when there were fewer than two sentences.
        """
        if sample_size < 1:
            raise ConfigurationError(f"sample_size must be >= 1, got {sample_size}")

        sentences = split_into_sentences(resolve_content(chunk))

        if len(sentences) < 2:
            return QuickCoherenceResult(
                estimate=1.0,
                confidence=ConfidenceLevel.LOW,
                reason="Too few sentences for meaningful coherence",
            )

        sampled = sample_sentences(sentences, sample_size)

        iterator = EmbeddingBatchIterator(self.provider, batch_size=self.config.embedding_batch_size)
        embeddings = await iterator.collect_vectors(sampled)
        result = centroid_coherence(embeddings, compute_centroid(embeddings))

        return QuickCoherenceResult(
            estimate=result["score"],
            confidence=(
                ConfidenceLevel.HIGH if len(sentences) <= sample_size else ConfidenceLevel.MEDIUM
            ),
            sampled_sentences=len(sampled),
            total_sentences=len(sentences),
        )


def _batch_summary(aggregate: Optional[CoherenceAggregate]) -> str:
    if aggregate is None:
        return "No valid chunks to analyze"

    return (
        f"Analyzed {aggregate.valid_chunks}/{aggregate.total_chunks} chunks. "
        f"Mean coherence: {aggregate.mean_coherence:.3f} "
        f"({quality_label(aggregate.mean_coherence)}). "
        f"Range: {aggregate.min_coherence:.3f} - {aggregate.max_coherence:.3f}"
    )


def format_coherence_score(result: CoherenceResult) -> str:
    """Human-readable report for one coherence result."""
    if result.method == CoherenceMethod.INSUFFICIENT_DATA:
        return f"Coherence: N/A ({result.details.reason})"

    details = result.details
    estimated = " (estimated)" if details.pairwise_skipped else ""

    return "\n".join(
        [
            f"Coherence Score: {result.overall_score:.3f} "
            f"({quality_label(result.overall_score).capitalize()})",
            f"  - Centroid coherence: {result.centroid_coherence:.3f}",
            f"  - Pairwise coherence: {result.pairwise_coherence:.3f}{estimated}",
            f"  - Variance score: {result.variance_score:.3f}",
            f"  - Sentences analyzed: {details.sentence_count}",
            f"  - Similarity range: {details.min_similarity:.3f} - {details.max_similarity:.3f}",
        ]
    )


def format_batch_coherence(batch: BatchCoherenceResult) -> str:
    """Human-readable report for a batch, listing low-coherence chunks."""
    lines = [batch.summary, ""]

    if batch.aggregate:
        aggregate = batch.aggregate
        lines.extend(
            [
                "Aggregate Statistics:",
                f"  Mean: {aggregate.mean_coherence:.3f}",
                f"  Median: {aggregate.median_coherence:.3f}",
                f"  Std Dev: {aggregate.std_dev_coherence:.3f}",
                f"  Range: {aggregate.min_coherence:.3f} - {aggregate.max_coherence:.3f}",
                "",
            ]
        )

    low = [
        r
        for r in batch.results
        if r.method == CoherenceMethod.EMBEDDING_BASED
        and r.overall_score < LOW_COHERENCE_THRESHOLD
    ]
    if low:
        lines.append(f"Low Coherence Chunks (< {LOW_COHERENCE_THRESHOLD}):")
        lines.extend(f"  Chunk {r.chunk_index}: {r.overall_score:.3f}" for r in low)

    return "\n".join(lines)


async def calculate_coherence(
    chunk: Any,
    provider,
    config: Optional[CoherenceConfig] = None,
    cancel_event: Optional[asyncio.Event] = None,
    **overrides,
) -> CoherenceResult:
    """Score one chunk with a one-off scorer."""
    scorer = ChunkCoherenceScorer(provider, config=config)
    return await scorer.calculate_coherence(chunk, cancel_event=cancel_event, **overrides)


async def calculate_batch_coherence(
    chunks: Optional[Sequence[Any]],
    provider,
    config: Optional[CoherenceConfig] = None,
    cancel_event: Optional[asyncio.Event] = None,
    **overrides,
) -> BatchCoherenceResult:
    """Score a list of chunks with a one-off scorer."""
    scorer = ChunkCoherenceScorer(provider, config=config)
    return await scorer.calculate_batch_coherence(chunks, cancel_event=cancel_event, **overrides)


async def quick_coherence_check(
    chunk: Any,
    provider,
    sample_size: int = 5,
    config: Optional[CoherenceConfig] = None,
) -> QuickCoherenceResult:
    """Cheap centroid-only coherence estimate with a one-off scorer."""
    scorer = ChunkCoherenceScorer(provider, config=config)
    return await scorer.quick_coherence_check(chunk, sample_size=sample_size)
