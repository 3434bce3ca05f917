"""
Batched, strictly sequential embedding consumption.

One iterator, two consumers:
- stream_adjacent_distances: keeps only the previous vector across batches,
  so memory stays O(batch_size) regardless of document length (chunker)
- collect_vectors: buffers every vector (coherence scorer, bounded inputs)

Batches are never run concurrently: adjacent distances depend on the
carry-over vector from the previous batch.
"""

import asyncio
import inspect
import logging
from typing import AsyncIterator, Callable, List, Optional, Sequence, Tuple

from shared.exceptions import BatchSizeMismatchError, ChunkingCancelledError, ConfigurationError

from .vector_math import cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 16


class EmbeddingBatchIterator:
    """
    Feed texts through an embedding provider in bounded batches.

    Usage:
        iterator = EmbeddingBatchIterator(provider, batch_size=16)

        # Streaming
        distances = await iterator.stream_adjacent_distances(len(windows), windows.__getitem__)

        # Buffered
        vectors = await iterator.collect_vectors(sentences)
    """

    def __init__(
        self,
        provider,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        """
        Args:
            provider: Object exposing get_embeddings(texts), sync or async
            batch_size: Texts per provider call (clamped to >= 1)
            cancel_event: Checked before each batch; when set, the call aborts
        """
        if provider is None or not callable(getattr(provider, "get_embeddings", None)):
            raise ConfigurationError("Embedding provider must expose get_embeddings(texts)")

        self.provider = provider
        self.batch_size = max(1, int(batch_size or DEFAULT_BATCH_SIZE))
        self.cancel_event = cancel_event

    async def _embed(self, texts: List[str]) -> List[Sequence[float]]:
        """One provider call. Provider exceptions propagate unchanged."""
        result = self.provider.get_embeddings(texts)
        if inspect.isawaitable(result):
            result = await result

        received = 0 if result is None else len(result)
        if received != len(texts):
            raise BatchSizeMismatchError(expected=len(texts), received=received)

        return list(result)

    async def iter_batches(
        self,
        count: int,
        text_for_index: Callable[[int], str],
        partial: Optional[list] = None,
    ) -> AsyncIterator[Tuple[int, List[str], List[Sequence[float]]]]:
        """
        Yield (start_index, texts, vectors) for consecutive batches.

        Texts are built lazily per batch via ``text_for_index``. ``partial``
        is attached to ChunkingCancelledError if the cancel event fires.
        """
        for start in range(0, count, self.batch_size):
            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.info(f"Embedding cancelled after {start}/{count} inputs")
                raise ChunkingCancelledError(processed=start, total=count, partial=partial)

            end = min(count, start + self.batch_size)
            texts = [text_for_index(i) for i in range(start, end)]
            vectors = await self._embed(texts)
            yield start, texts, vectors

    async def iter_adjacent_distances(
        self,
        count: int,
        text_for_index: Callable[[int], str],
        partial: Optional[list] = None,
    ) -> AsyncIterator[float]:
        """Yield 1 - cosine similarity for each consecutive pair of inputs."""
        previous = None
        async for _, _, vectors in self.iter_batches(count, text_for_index, partial):
            for vector in vectors:
                if previous is not None:
                    yield 1 - cosine_similarity(previous, vector)
                previous = vector

    async def stream_adjacent_distances(
        self,
        count: int,
        text_for_index: Callable[[int], str],
    ) -> List[float]:
        """
        Distances between consecutive inputs, length ``count - 1``.

        Only the last vector of each batch outlives that batch.
        """
        distances: List[float] = []
        async for distance in self.iter_adjacent_distances(count, text_for_index, distances):
            distances.append(distance)
        return distances

    async def collect_vectors(self, texts: Sequence[str]) -> List[Sequence[float]]:
        """Embed every text and return all vectors in input order."""
        vectors: List[Sequence[float]] = []
        async for _, _, batch in self.iter_batches(len(texts), texts.__getitem__, vectors):
            vectors.extend(batch)
        return vectors
