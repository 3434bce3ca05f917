"""
Error taxonomy for chunking and coherence scoring.

Every public call either returns a typed result or raises one of these.
Too-few-sentences is not an error: it is reported as an
``insufficient_data`` result.
"""

from typing import Any, List, Optional


class ChunkingError(Exception):
    """Base class for chunking and coherence errors."""

    pass


class ConfigurationError(ChunkingError):
    """Raised when configuration or the embedding provider is unusable."""

    pass


class EmbeddingProviderError(ChunkingError):
    """Raised by bundled providers when the underlying model call fails."""

    pass


class BatchSizeMismatchError(ChunkingError):
    """
    Provider returned a different number of vectors than texts sent.

    Signals a transport or provider bug. Not recoverable locally.
    """

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Embedding batch size mismatch: expected {expected}, received {received}"
        )


class ChunkingCancelledError(ChunkingError):
    """
    Raised when a cancel event is set between embedding batches.

    ``partial`` holds what was computed before cancellation
    (distances for the chunker, vectors for the scorer).
    """

    def __init__(self, processed: int, total: int, partial: Optional[List[Any]] = None):
        self.processed = processed
        self.total = total
        self.partial = partial if partial is not None else []
        super().__init__(f"Cancelled after {processed}/{total} inputs were embedded")
