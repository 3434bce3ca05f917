"""Tests for breakpoint detection, chunk assembly and the semantic chunker."""

import asyncio

import pytest

from chunking.config import ChunkerConfig
from chunking.semantic_chunker import (
    SemanticChunker,
    chunk_text,
    chunk_text_with_coherence,
    create_chunks_from_breakpoints,
    find_breakpoints,
    post_process_chunks,
    split_large_chunk,
)
from chunking.sentence_splitter import split_into_sentences
from embeddings.embedder import HashEmbeddingProvider
from shared.exceptions import ChunkingCancelledError, ConfigurationError
from shared.schemas import ChunkMethod, CoherenceMethod

from conftest import COOKING_SENTENCES, ML_SENTENCES, RecordingProvider, make_chunk, topic_embedding

TOPIC_SPLIT = {"buffer_size": 0, "min_chunk_words": 1, "breakpoint_percentile_threshold": 75}


class TestFindBreakpoints:
    def test_single_outlier(self):
        assert find_breakpoints([0.1, 0.15, 0.9, 0.12], 75) == [2]

    def test_uniform_distances_have_no_breakpoints(self):
        assert find_breakpoints([0.3, 0.3, 0.3, 0.3], 95) == []

    def test_high_percentile_keeps_the_largest(self):
        distances = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9]

        assert 8 in find_breakpoints(distances, 95)

    def test_higher_threshold_never_adds_breakpoints(self):
        distances = [0.05, 0.4, 0.12, 0.33, 0.9, 0.21, 0.6, 0.07]

        loose = set(find_breakpoints(distances, 50))
        strict = set(find_breakpoints(distances, 90))

        assert strict <= loose

    def test_empty_distances(self):
        assert find_breakpoints([], 95) == []


class TestCreateChunks:
    def test_slices_at_breakpoints(self):
        sentences = ["S0.", "S1.", "S2.", "S3.", "S4."]

        chunks = create_chunks_from_breakpoints(sentences, [1, 3])

        assert [c.content for c in chunks] == ["S0. S1.", "S2. S3.", "S4."]
        assert [(c.start_sentence, c.end_sentence) for c in chunks] == [(0, 1), (2, 3), (4, 4)]
        assert [c.sentence_count for c in chunks] == [2, 2, 1]
        assert all(c.method == ChunkMethod.SEMANTIC for c in chunks)

    def test_no_breakpoints_gives_one_chunk(self):
        chunks = create_chunks_from_breakpoints(["A.", "B."], [])

        assert len(chunks) == 1
        assert chunks[0].end_sentence == 1

    def test_breakpoint_at_last_sentence_adds_no_empty_chunk(self):
        chunks = create_chunks_from_breakpoints(["A.", "B.", "C."], [2])

        assert len(chunks) == 1


class TestSplitLargeChunk:
    def test_split_with_overlap(self):
        chunk = make_chunk(850, start=3, end=9, sentence_count=7)

        pieces = split_large_chunk(chunk, 800)

        assert len(pieces) == 2
        assert [p.word_count for p in pieces] == [800, 80]
        assert pieces[0].content.split()[-30:] == pieces[1].content.split()[:30]
        assert all(p.method == ChunkMethod.SEMANTIC_SPLIT for p in pieces)
        assert all(p.sentence_count == -1 for p in pieces)
        assert all((p.start_sentence, p.end_sentence) == (3, 9) for p in pieces)

    def test_last_piece_ends_the_loop(self):
        pieces = split_large_chunk(make_chunk(801), 800)

        assert len(pieces) == 2
        assert pieces[-1].content.split()[-1] == "w800"

    def test_small_max_words_terminates_without_losing_words(self):
        chunk = make_chunk(12)

        pieces = split_large_chunk(chunk, 5)

        assert len(pieces) == 8
        assert all(p.word_count <= 5 for p in pieces)
        assert pieces[-1].content.split()[-1] == "w11"
        covered = {word for p in pieces for word in p.content.split()}
        assert covered == set(chunk.content.split())

    def test_one_word_pieces_have_no_overlap(self):
        pieces = split_large_chunk(make_chunk(4), 1)

        assert [p.content for p in pieces] == ["w0", "w1", "w2", "w3"]


class TestPostProcess:
    def test_small_chunks_are_merged(self):
        chunks = [
            make_chunk(10, 0, 0, prefix="a"),
            make_chunk(10, 1, 1, prefix="b"),
            make_chunk(60, 2, 2, prefix="c"),
        ]

        processed = post_process_chunks(chunks, min_words=15, max_words=100)

        assert len(processed) == 2
        merged = processed[0]
        assert merged.method == ChunkMethod.SEMANTIC_MERGED
        assert merged.content == f"{chunks[0].content} {chunks[1].content}"
        assert (merged.start_sentence, merged.end_sentence) == (0, 1)
        assert merged.sentence_count == 2
        assert processed[1] == chunks[2]

    def test_small_tail_is_kept(self):
        chunks = [make_chunk(60, 0, 0), make_chunk(10, 1, 1, prefix="t")]

        processed = post_process_chunks(chunks, min_words=50, max_words=100)

        assert processed == chunks
        assert processed[-1].method == ChunkMethod.SEMANTIC

    def test_oversized_chunk_is_split(self):
        processed = post_process_chunks([make_chunk(850)], min_words=50, max_words=800)

        assert [p.method for p in processed] == [ChunkMethod.SEMANTIC_SPLIT] * 2

    def test_oversized_accumulator_is_flushed_unchanged(self):
        chunks = [make_chunk(10, 0, 0, prefix="a"), make_chunk(850, 1, 4, sentence_count=4)]

        processed = post_process_chunks(chunks, min_words=50, max_words=800)

        assert len(processed) == 1
        merged = processed[0]
        assert merged.method == ChunkMethod.SEMANTIC_MERGED
        assert (merged.start_sentence, merged.end_sentence) == (0, 4)
        assert merged.sentence_count == 5
        assert merged.word_count == 860

    def test_oversized_accumulator_is_flushed_before_next_chunk(self):
        chunks = [
            make_chunk(10, 0, 0, prefix="a"),
            make_chunk(850, 1, 4, sentence_count=4),
            make_chunk(60, 5, 6, sentence_count=2, prefix="c"),
        ]

        processed = post_process_chunks(chunks, min_words=50, max_words=800)

        assert [p.method for p in processed] == [ChunkMethod.SEMANTIC_MERGED, ChunkMethod.SEMANTIC]
        assert processed[0].word_count == 860
        assert processed[1] == chunks[2]

    def test_chunks_in_bounds_pass_through(self):
        chunks = [make_chunk(60, 0, 1), make_chunk(70, 2, 3, prefix="x")]

        assert post_process_chunks(chunks, min_words=50, max_words=800) == chunks


class TestChunkText:
    @pytest.mark.asyncio
    async def test_finds_topic_boundary(self, topic_provider, two_topic_text):
        result = await chunk_text(two_topic_text, topic_provider, **TOPIC_SPLIT)

        assert len(result.chunks) == 2
        assert result.chunks[0].content == " ".join(ML_SENTENCES)
        assert result.chunks[1].content == " ".join(COOKING_SENTENCES)
        assert [(c.start_sentence, c.end_sentence) for c in result.chunks] == [(0, 3), (4, 7)]

        metadata = result.metadata
        assert metadata.method == ChunkMethod.SEMANTIC
        assert metadata.total_sentences == 8
        assert [bp.index for bp in metadata.breakpoints] == [3]
        assert metadata.breakpoints[0].distance == pytest.approx(1.0)
        assert metadata.distance_stats.max == pytest.approx(1.0)
        assert metadata.config["buffer_size"] == 0
        assert metadata.config["breakpoint_percentile_threshold"] == 75

    @pytest.mark.asyncio
    async def test_default_config_merges_short_document(self, topic_provider, two_topic_text):
        result = await chunk_text(two_topic_text, topic_provider)

        assert len(result.chunks) == 1
        chunk = result.chunks[0]
        assert chunk.method == ChunkMethod.SEMANTIC_MERGED
        assert (chunk.start_sentence, chunk.end_sentence) == (0, 7)
        assert chunk.sentence_count == 8
        assert [bp.index for bp in result.metadata.breakpoints] == [2]

    @pytest.mark.asyncio
    async def test_batch_size_does_not_change_chunks(self, two_topic_text):
        small = RecordingProvider(topic_embedding)
        large = RecordingProvider(topic_embedding)

        small_result = await chunk_text(two_topic_text, small, embedding_batch_size=3, **TOPIC_SPLIT)
        large_result = await chunk_text(two_topic_text, large, **TOPIC_SPLIT)

        assert small_result.chunks == large_result.chunks
        assert [len(call) for call in small.calls] == [3, 3, 2]
        assert [len(call) for call in large.calls] == [8]

    @pytest.mark.asyncio
    async def test_few_sentences_return_single_chunk(self, topic_provider):
        text = "  Short text. Only two sentences.  "

        result = await chunk_text(text, topic_provider)

        assert result.metadata.method == ChunkMethod.SINGLE_CHUNK
        assert len(result.chunks) == 1
        assert result.chunks[0].content == text.strip()
        assert result.chunks[0].method == ChunkMethod.SINGLE_CHUNK
        assert result.chunks[0].sentence_count == 2
        assert result.metadata.breakpoints == []
        assert topic_provider.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_empty_text_returns_no_chunks(self, topic_provider, text):
        result = await chunk_text(text, topic_provider)

        assert result.chunks == []
        assert topic_provider.calls == []
        assert result.metadata.method == ChunkMethod.SINGLE_CHUNK
        assert result.metadata.total_sentences == 0

    @pytest.mark.asyncio
    async def test_deterministic_for_same_input(self):
        text = " ".join(f"Sentence {i} talks about item {i * 7}." for i in range(30))
        chunker = SemanticChunker(HashEmbeddingProvider(), ChunkerConfig(min_chunk_words=1))

        first = await chunker.chunk_text(text)
        second = await chunker.chunk_text(text)

        assert first.chunks == second.chunks
        assert first.metadata.breakpoints == second.metadata.breakpoints

    @pytest.mark.asyncio
    async def test_chunks_cover_every_sentence_once(self):
        text = " ".join(f"Sentence {i} talks about item {i * 7}." for i in range(30))
        sentences = split_into_sentences(text)
        chunker = SemanticChunker(
            HashEmbeddingProvider(), ChunkerConfig(min_chunk_words=1, breakpoint_percentile_threshold=70)
        )

        result = await chunker.chunk_text(text)

        assert len(result.chunks) > 1
        assert " ".join(c.content for c in result.chunks) == " ".join(sentences)
        assert result.chunks[0].start_sentence == 0
        assert result.chunks[-1].end_sentence == len(sentences) - 1
        for previous, current in zip(result.chunks, result.chunks[1:]):
            assert current.start_sentence == previous.end_sentence + 1

    @pytest.mark.asyncio
    async def test_unknown_override_raises(self, topic_provider, two_topic_text):
        with pytest.raises(ConfigurationError):
            await chunk_text(two_topic_text, topic_provider, chunk_size=100)

    @pytest.mark.asyncio
    async def test_invalid_override_raises(self, topic_provider, two_topic_text):
        with pytest.raises(ConfigurationError):
            await chunk_text(two_topic_text, topic_provider, min_chunk_words=900)

    @pytest.mark.asyncio
    async def test_cancel_event_aborts(self, topic_provider, two_topic_text):
        event = asyncio.Event()
        event.set()

        with pytest.raises(ChunkingCancelledError) as exc_info:
            await chunk_text(two_topic_text, topic_provider, cancel_event=event)

        assert exc_info.value.total == 8
        assert exc_info.value.partial == []


class TestChunkerHelpers:
    def test_calculate_distances(self):
        distances = SemanticChunker.calculate_distances([[1, 0], [1, 0], [0, 1]])

        assert distances == pytest.approx([0.0, 1.0])

    def test_create_combined_sentences(self):
        assert SemanticChunker.create_combined_sentences(["A.", "B.", "C."], 1) == [
            "A. B.",
            "A. B. C.",
            "B. C.",
        ]

    @pytest.mark.asyncio
    async def test_streaming_distances_use_context_windows(self, topic_provider):
        chunker = SemanticChunker(topic_provider)

        distances = await chunker.calculate_distances_streaming(ML_SENTENCES + COOKING_SENTENCES)

        assert distances == pytest.approx([0, 0, 1, 0, 0, 0, 0])
        assert topic_provider.calls[0][0] == " ".join(ML_SENTENCES[:2])


class TestChunkTextWithCoherence:
    @pytest.mark.asyncio
    async def test_attaches_scores_to_every_chunk(self, topic_provider, two_topic_text):
        result = await chunk_text_with_coherence(
            two_topic_text, topic_provider, max_sentences_for_pairwise=10, **TOPIC_SPLIT
        )

        assert len(result.chunks) == 2
        for chunk in result.chunks:
            assert chunk.coherence_score == pytest.approx(1.0)
            assert chunk.coherence_details.method == CoherenceMethod.EMBEDDING_BASED
            assert chunk.coherence_details.pairwise_coherence == pytest.approx(1.0)

        assert result.metadata.coherence.valid_chunks == 2
        assert result.metadata.coherence.mean_coherence == pytest.approx(1.0)
        assert result.metadata.coherence_summary.startswith("Analyzed 2/2 chunks.")
        assert [bp.index for bp in result.metadata.breakpoints] == [3]

    @pytest.mark.asyncio
    async def test_single_sentence_chunk_scores_one(self, topic_provider):
        result = await chunk_text_with_coherence("Just one sentence here.", topic_provider)

        chunk = result.chunks[0]
        assert chunk.coherence_score == 1.0
        assert chunk.coherence_details.method == CoherenceMethod.INSUFFICIENT_DATA
        assert result.metadata.coherence is None
        assert result.metadata.coherence_summary == "No valid chunks to analyze"

    @pytest.mark.asyncio
    async def test_empty_text(self, topic_provider):
        result = await chunk_text_with_coherence("", topic_provider)

        assert result.chunks == []
        assert result.metadata.coherence_summary == "No chunks provided"

    @pytest.mark.asyncio
    async def test_unknown_mixed_override_raises(self, topic_provider, two_topic_text):
        with pytest.raises(ConfigurationError):
            await chunk_text_with_coherence(two_topic_text, topic_provider, not_an_option=1)
