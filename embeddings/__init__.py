"""
Embeddings Module.

This module handles:
- The embedding provider contract and bundled providers
- Cosine similarity and centroids
- Batched embedding consumption (streaming distances or buffered vectors)

Usage:
    from embeddings import EmbeddingBatchIterator, HashEmbeddingProvider

    iterator = EmbeddingBatchIterator(HashEmbeddingProvider(), batch_size=16)
    vectors = await iterator.collect_vectors(["text1", "text2"])
"""

from .batch_iterator import DEFAULT_BATCH_SIZE, EmbeddingBatchIterator
from .embedder import (
    EmbeddingConfig,
    EmbeddingProvider,
    HashEmbeddingProvider,
    SentenceTransformerEmbeddingProvider,
)
from .vector_math import adjacent_distances, compute_centroid, cosine_similarity

__all__ = [
    "EmbeddingProvider",
    "EmbeddingConfig",
    "SentenceTransformerEmbeddingProvider",
    "HashEmbeddingProvider",
    "EmbeddingBatchIterator",
    "DEFAULT_BATCH_SIZE",
    "cosine_similarity",
    "compute_centroid",
    "adjacent_distances",
]
