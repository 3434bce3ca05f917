"""
Embedding providers.

The chunker and the coherence scorer only need one thing from a provider:
``get_embeddings(texts) -> vectors``, aligned 1:1 with the input. It may be
a coroutine function or a plain function.

Bundled providers:
- SentenceTransformerEmbeddingProvider: local sentence-transformers model
- HashEmbeddingProvider: deterministic SHA-256 vectors for offline use and tests
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Awaitable, List, Optional, Protocol, Union, runtime_checkable

import numpy as np

from shared.exceptions import ConfigurationError, EmbeddingProviderError

logger = logging.getLogger(__name__)

Vectors = List[List[float]]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Maps a batch of strings to fixed-dimension vectors, in input order."""

    def get_embeddings(self, texts: List[str]) -> Union[Vectors, Awaitable[Vectors]]:
        ...


@dataclass(frozen=True)
class EmbeddingConfig:
    """
    Embedding model configuration.

    IMPORTANT: Chunk boundaries tuned with one model do not transfer to
    another. Re-tune breakpoint_percentile_threshold when changing it.
    """

    model_name: str = "all-MiniLM-L6-v2"
    normalize: bool = True
    max_seq_length: int = 512


class SentenceTransformerEmbeddingProvider:
    """
    Embedding provider backed by a local sentence-transformers model.

    The model is loaded on first use. Encoding runs in a worker thread so
    the event loop is not blocked.

    Usage:
        provider = SentenceTransformerEmbeddingProvider()
        vectors = await provider.get_embeddings(["text1", "text2"])
    """

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self._model = None

    @property
    def model(self):
        """Lazy load the model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ConfigurationError(
                    "sentence-transformers is not installed. "
                    "Install the 'sentence-transformers' extra or pass another provider."
                ) from e

            logger.info(f"Loading embedding model: {self.config.model_name}")
            try:
                self._model = SentenceTransformer(self.config.model_name)
            except Exception as e:
                raise ConfigurationError(
                    f"Could not load embedding model {self.config.model_name}: {e}"
                ) from e
        return self._model

    def preprocess_text(self, text: str) -> str:
        """
        Deterministic text preprocessing.

        Keep this stable: changing it changes every distance.
        """
        text = " ".join(text.split())

        max_chars = self.config.max_seq_length * 4  # Approximate
        if len(text) > max_chars:
            text = text[:max_chars]

        return text

    def _encode(self, texts: List[str]) -> Vectors:
        model = self.model
        processed = [self.preprocess_text(t) for t in texts]

        try:
            vectors = model.encode(processed, show_progress_bar=False, convert_to_numpy=True)
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding model failed: {e}") from e

        # Normalize to unit length for cosine similarity
        if self.config.normalize:
            norms = np.linalg.norm(vectors, axis=1, keepdims=True)
            vectors = vectors / (norms + 1e-10)

        return vectors.tolist()

    async def get_embeddings(self, texts: List[str]) -> Vectors:
        if not texts:
            return []
        return await asyncio.to_thread(self._encode, list(texts))


def _hash_embedding(text: str, dim: int) -> List[float]:
    """Unit-length vector of size ``dim`` expanded from SHA-256 digests."""
    out: List[float] = []
    counter = 0
    while len(out) < dim:
        digest = hashlib.sha256(f"{counter}|{text}".encode("utf-8", errors="ignore")).digest()
        # bytes -> floats in [-1, 1]
        out.extend((b / 127.5) - 1.0 for b in digest)
        counter += 1

    vec = np.asarray(out[:dim])
    norm = np.linalg.norm(vec) or 1.0
    return (vec / norm).tolist()


class HashEmbeddingProvider:
    """
    Deterministic, dependency-free embeddings.

    Identical texts always map to identical vectors; different texts are
    close to orthogonal. No semantics, but stable for tests and dry runs.
    """

    def __init__(self, dimension: int = 64):
        if dimension < 1:
            raise ConfigurationError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension

    def get_embeddings(self, texts: List[str]) -> Vectors:
        return [_hash_embedding(t, self.dimension) for t in texts]
