"""
Pydantic schemas for chunking and coherence results.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ChunkMethod(str, Enum):
    SINGLE_CHUNK = "single_chunk"
    SEMANTIC = "semantic"
    SEMANTIC_MERGED = "semantic_merged"
    SEMANTIC_SPLIT = "semantic_split"


class CoherenceMethod(str, Enum):
    EMBEDDING_BASED = "embedding_based"
    INSUFFICIENT_DATA = "insufficient_data"


class CoherenceDetails(BaseModel):
    """Breakdown of a coherence score."""

    model_config = ConfigDict(frozen=True)

    sentence_count: int
    centroid_distance_std_dev: Optional[float] = None
    min_similarity: Optional[float] = None
    max_similarity: Optional[float] = None
    pairwise_skipped: bool = False
    reason: Optional[str] = None


class CoherenceResult(BaseModel):
    """Coherence of a single chunk."""

    model_config = ConfigDict(frozen=True)

    overall_score: Optional[float] = Field(
        default=None, description="Combined score in [0, 1], higher is more coherent"
    )
    centroid_coherence: Optional[float] = None
    pairwise_coherence: Optional[float] = None
    variance_score: Optional[float] = None
    details: CoherenceDetails
    method: CoherenceMethod
    processing_time_ms: Optional[float] = None


class ChunkCoherenceResult(CoherenceResult):
    """Coherence result tagged with its position in a batch."""

    chunk_index: int


class CoherenceAggregate(BaseModel):
    """Statistics over the embedding-based results of a batch."""

    model_config = ConfigDict(frozen=True)

    mean_coherence: float
    median_coherence: float
    min_coherence: float
    max_coherence: float
    std_dev_coherence: float
    valid_chunks: int
    total_chunks: int


class BatchCoherenceResult(BaseModel):
    """Coherence results for a list of chunks."""

    model_config = ConfigDict(frozen=True)

    results: List[ChunkCoherenceResult] = Field(default_factory=list)
    aggregate: Optional[CoherenceAggregate] = None
    summary: str
    processing_time_ms: Optional[float] = None


class QuickCoherenceResult(BaseModel):
    """Cheap centroid-only coherence estimate."""

    model_config = ConfigDict(frozen=True)

    estimate: float
    confidence: ConfidenceLevel
    sampled_sentences: Optional[int] = None
    total_sentences: Optional[int] = None
    reason: Optional[str] = None


class ChunkCoherenceDetails(BaseModel):
    """Coherence breakdown attached to a chunk."""

    model_config = ConfigDict(frozen=True)

    centroid_coherence: Optional[float] = None
    pairwise_coherence: Optional[float] = None
    variance_score: Optional[float] = None
    method: CoherenceMethod


class Chunk(BaseModel):
    """A contiguous run of sentences produced by the chunker."""

    model_config = ConfigDict(frozen=True)

    content: str
    sentence_count: int = Field(
        ..., description="Sentences in the chunk, -1 for word-level split pieces"
    )
    start_sentence: int
    end_sentence: int
    method: ChunkMethod
    coherence_score: Optional[float] = None
    coherence_details: Optional[ChunkCoherenceDetails] = None

    @property
    def word_count(self) -> int:
        return len(self.content.split())


class BreakpointInfo(BaseModel):
    """A topic boundary and the distance that triggered it."""

    model_config = ConfigDict(frozen=True)

    index: int
    distance: float


class DistanceStats(BaseModel):
    """Summary of the adjacent-sentence distance distribution."""

    model_config = ConfigDict(frozen=True)

    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0


class ChunkMetadata(BaseModel):
    """Metadata describing one chunking run."""

    model_config = ConfigDict(frozen=True)

    method: ChunkMethod
    total_sentences: int
    breakpoints: List[BreakpointInfo] = Field(default_factory=list)
    distance_stats: Optional[DistanceStats] = None
    processing_time_ms: float
    config: Dict[str, Any] = Field(default_factory=dict)
    coherence: Optional[CoherenceAggregate] = None
    coherence_summary: Optional[str] = None


class ChunkingResult(BaseModel):
    """Chunks and metadata returned by the chunker."""

    model_config = ConfigDict(frozen=True)

    chunks: List[Chunk] = Field(default_factory=list)
    metadata: ChunkMetadata
