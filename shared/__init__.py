"""
Shared types for chunking and coherence scoring.

- Error taxonomy (exceptions)
- Result schemas (pydantic models)
"""

from .exceptions import (
    BatchSizeMismatchError,
    ChunkingCancelledError,
    ChunkingError,
    ConfigurationError,
    EmbeddingProviderError,
)
from .schemas import (
    BatchCoherenceResult,
    BreakpointInfo,
    Chunk,
    ChunkCoherenceDetails,
    ChunkCoherenceResult,
    ChunkingResult,
    ChunkMetadata,
    ChunkMethod,
    CoherenceAggregate,
    CoherenceDetails,
    CoherenceMethod,
    CoherenceResult,
    ConfidenceLevel,
    DistanceStats,
    QuickCoherenceResult,
)

__all__ = [
    "ChunkingError",
    "ConfigurationError",
    "EmbeddingProviderError",
    "BatchSizeMismatchError",
    "ChunkingCancelledError",
    "Chunk",
    "ChunkMethod",
    "ChunkMetadata",
    "ChunkingResult",
    "BreakpointInfo",
    "DistanceStats",
    "CoherenceResult",
    "CoherenceDetails",
    "CoherenceMethod",
    "ChunkCoherenceResult",
    "ChunkCoherenceDetails",
    "CoherenceAggregate",
    "BatchCoherenceResult",
    "QuickCoherenceResult",
    "ConfidenceLevel",
]
