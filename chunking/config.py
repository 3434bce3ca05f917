"""
Configuration for semantic chunking and coherence scoring.

Configs are frozen dataclasses. Build one per request and derive
variants with ``with_overrides``; nothing here is cached globally.
"""

import os
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Tuple

from shared.exceptions import ConfigurationError


def _env(name: str, default: Any, cast=int) -> Any:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}")


@dataclass(frozen=True)
class ChunkerConfig:
    """Semantic chunker configuration."""

    # Percentile of adjacent distances that must be exceeded to break.
    # Higher = fewer breakpoints = larger chunks.
    breakpoint_percentile_threshold: float = 95
    # Sentences on each side included in the embedded window
    buffer_size: int = 1
    max_chunk_words: int = 800
    min_chunk_words: int = 50
    # Below this, the whole text is returned as a single chunk
    min_sentences_for_semantic: int = 3
    embedding_batch_size: int = 16

    def __post_init__(self):
        if not 0 < self.breakpoint_percentile_threshold < 100:
            raise ConfigurationError(
                "breakpoint_percentile_threshold must be in (0, 100), "
                f"got {self.breakpoint_percentile_threshold}"
            )
        if self.buffer_size < 0:
            raise ConfigurationError(f"buffer_size must be >= 0, got {self.buffer_size}")
        if self.min_chunk_words < 1 or self.max_chunk_words < 1:
            raise ConfigurationError("min_chunk_words and max_chunk_words must be positive")
        if self.min_chunk_words > self.max_chunk_words:
            raise ConfigurationError(
                f"min_chunk_words ({self.min_chunk_words}) exceeds "
                f"max_chunk_words ({self.max_chunk_words})"
            )
        if self.min_sentences_for_semantic < 1:
            raise ConfigurationError("min_sentences_for_semantic must be >= 1")
        if self.embedding_batch_size < 1:
            raise ConfigurationError("embedding_batch_size must be >= 1")

    def with_overrides(self, **overrides) -> "ChunkerConfig":
        """Return a copy with the given fields replaced."""
        if not overrides:
            return self
        _check_keys(type(self), overrides)
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls) -> "ChunkerConfig":
        """Load from CHUNKER_* environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            breakpoint_percentile_threshold=_env(
                "CHUNKER_BREAKPOINT_PERCENTILE_THRESHOLD",
                defaults.breakpoint_percentile_threshold,
                float,
            ),
            buffer_size=_env("CHUNKER_BUFFER_SIZE", defaults.buffer_size),
            max_chunk_words=_env("CHUNKER_MAX_CHUNK_WORDS", defaults.max_chunk_words),
            min_chunk_words=_env("CHUNKER_MIN_CHUNK_WORDS", defaults.min_chunk_words),
            min_sentences_for_semantic=_env(
                "CHUNKER_MIN_SENTENCES_FOR_SEMANTIC", defaults.min_sentences_for_semantic
            ),
            embedding_batch_size=_env(
                "CHUNKER_EMBEDDING_BATCH_SIZE", defaults.embedding_batch_size
            ),
        )


@dataclass(frozen=True)
class CoherenceWeights:
    """Weights of the three coherence signals. Normalised by their sum."""

    centroid: float = 0.5
    pairwise: float = 0.3
    variance: float = 0.2

    def __post_init__(self):
        if min(self.centroid, self.pairwise, self.variance) < 0:
            raise ConfigurationError("Coherence weights must be non-negative")
        if self.total <= 0:
            raise ConfigurationError("Coherence weights must have a positive sum")

    @property
    def total(self) -> float:
        return self.centroid + self.pairwise + self.variance


@dataclass(frozen=True)
class CoherenceConfig:
    """Chunk coherence scorer configuration."""

    min_sentences_for_coherence: int = 2
    # Pairwise similarity is O(n^2); above this the centroid score is reused
    max_sentences_for_pairwise: int = 50
    weights: CoherenceWeights = field(default_factory=CoherenceWeights)
    embedding_batch_size: int = 16

    def __post_init__(self):
        if isinstance(self.weights, Mapping):
            object.__setattr__(self, "weights", CoherenceWeights(**self.weights))
        if self.min_sentences_for_coherence < 1:
            raise ConfigurationError("min_sentences_for_coherence must be >= 1")
        if self.max_sentences_for_pairwise < 2:
            raise ConfigurationError("max_sentences_for_pairwise must be >= 2")
        if self.embedding_batch_size < 1:
            raise ConfigurationError("embedding_batch_size must be >= 1")

    def with_overrides(self, **overrides) -> "CoherenceConfig":
        """Return a copy with the given fields replaced.

        ``weights`` may be a partial mapping, e.g. ``{"centroid": 1.0}``.
        """
        if not overrides:
            return self
        _check_keys(type(self), overrides)
        weights = overrides.get("weights")
        if isinstance(weights, Mapping):
            overrides["weights"] = replace(self.weights, **weights)
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls) -> "CoherenceConfig":
        """Load from COHERENCE_* environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            min_sentences_for_coherence=_env(
                "COHERENCE_MIN_SENTENCES", defaults.min_sentences_for_coherence
            ),
            max_sentences_for_pairwise=_env(
                "COHERENCE_MAX_SENTENCES_FOR_PAIRWISE", defaults.max_sentences_for_pairwise
            ),
            weights=CoherenceWeights(
                centroid=_env("COHERENCE_WEIGHT_CENTROID", defaults.weights.centroid, float),
                pairwise=_env("COHERENCE_WEIGHT_PAIRWISE", defaults.weights.pairwise, float),
                variance=_env("COHERENCE_WEIGHT_VARIANCE", defaults.weights.variance, float),
            ),
            embedding_batch_size=_env(
                "COHERENCE_EMBEDDING_BATCH_SIZE", defaults.embedding_batch_size
            ),
        )


def _check_keys(config_cls, overrides: Mapping[str, Any]) -> None:
    known = {f.name for f in fields(config_cls)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {config_cls.__name__} option(s): {', '.join(sorted(unknown))}"
        )


def split_overrides(
    overrides: Mapping[str, Any],
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Route a mixed override mapping to (chunker, coherence) overrides.

    Keys known to both configs (embedding_batch_size) go to both.
    Unknown keys raise ConfigurationError.
    """
    chunker_keys = {f.name for f in fields(ChunkerConfig)}
    coherence_keys = {f.name for f in fields(CoherenceConfig)}

    unknown = set(overrides) - chunker_keys - coherence_keys
    if unknown:
        raise ConfigurationError(f"Unknown option(s): {', '.join(sorted(unknown))}")

    chunker = {k: v for k, v in overrides.items() if k in chunker_keys}
    coherence = {k: v for k, v in overrides.items() if k in coherence_keys}
    return chunker, coherence
