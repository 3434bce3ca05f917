"""
Semantic Chunking Module.

Splits documents at embedding-detected topic boundaries and scores how
coherent each resulting chunk is:
- Sentence segmentation shared by chunker and scorer
- Streaming adjacent-distance computation in bounded embedding batches
- Percentile breakpoints, merge of small chunks, split of large ones
- Centroid / pairwise / variance coherence scoring

Usage:
    from chunking import SemanticChunker
    from embeddings import SentenceTransformerEmbeddingProvider

    chunker = SemanticChunker(SentenceTransformerEmbeddingProvider())
    result = await chunker.chunk_text_with_coherence(text)
"""

from .chunk_eval_tools import ChunkQualityReport, evaluate_chunk_quality
from .coherence_scorer import (
    ChunkCoherenceScorer,
    calculate_batch_coherence,
    calculate_coherence,
    format_batch_coherence,
    format_coherence_score,
    quick_coherence_check,
)
from .config import ChunkerConfig, CoherenceConfig, CoherenceWeights, split_overrides
from .semantic_chunker import (
    SemanticChunker,
    chunk_text,
    chunk_text_with_coherence,
    create_chunks_from_breakpoints,
    find_breakpoints,
    post_process_chunks,
    split_large_chunk,
)
from .sentence_splitter import (
    ABBREVIATIONS,
    build_combined_sentence,
    create_combined_sentences,
    split_into_sentences,
)

__all__ = [
    "SemanticChunker",
    "chunk_text",
    "chunk_text_with_coherence",
    "find_breakpoints",
    "create_chunks_from_breakpoints",
    "post_process_chunks",
    "split_large_chunk",
    "ChunkCoherenceScorer",
    "calculate_coherence",
    "calculate_batch_coherence",
    "quick_coherence_check",
    "format_coherence_score",
    "format_batch_coherence",
    "ChunkerConfig",
    "CoherenceConfig",
    "CoherenceWeights",
    "split_overrides",
    "split_into_sentences",
    "build_combined_sentence",
    "create_combined_sentences",
    "ABBREVIATIONS",
    "evaluate_chunk_quality",
    "ChunkQualityReport",
]
