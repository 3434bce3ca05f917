"""
Shared test fixtures.

Provides: recording embedding providers with scripted vectors
"""

from typing import Callable, Dict, List, Sequence

import pytest


class RecordingProvider:
    """Async provider that maps each text through ``embed_fn`` and records calls."""

    def __init__(self, embed_fn: Callable[[str], Sequence[float]]):
        self.embed_fn = embed_fn
        self.calls: List[List[str]] = []

    async def get_embeddings(self, texts: List[str]) -> List[Sequence[float]]:
        self.calls.append(list(texts))
        return [list(self.embed_fn(t)) for t in texts]


def topic_embedding(text: str) -> List[float]:
    """Cooking texts point one way, everything else the other."""
    lowered = text.lower()
    if any(word in lowered for word in ("cook", "recipe", "chef", "food")):
        return [0.0, 1.0, 0.0]
    return [1.0, 0.0, 0.0]


def lookup_embedding(table: Dict[str, Sequence[float]]) -> Callable[[str], Sequence[float]]:
    def embed(text: str) -> Sequence[float]:
        return table[text]

    return embed


ML_SENTENCES = [
    "Machine learning is a branch of artificial intelligence.",
    "It allows computers to learn from data.",
    "Deep learning is a subset of machine learning.",
    "It uses neural networks with many layers.",
]

COOKING_SENTENCES = [
    "Now lets talk about cooking.",
    "Cooking is the art of preparing food.",
    "Recipes provide instructions for dishes.",
    "Chefs are trained in culinary arts.",
]


@pytest.fixture
def topic_provider():
    return RecordingProvider(topic_embedding)


@pytest.fixture
def two_topic_text():
    return " ".join(ML_SENTENCES + COOKING_SENTENCES)


def make_chunk(word_count: int, start: int = 0, end: int = 0, sentence_count: int = 1, prefix: str = "w"):
    from shared.schemas import Chunk, ChunkMethod

    return Chunk(
        content=" ".join(f"{prefix}{i}" for i in range(word_count)),
        sentence_count=sentence_count,
        start_sentence=start,
        end_sentence=end,
        method=ChunkMethod.SEMANTIC,
    )
