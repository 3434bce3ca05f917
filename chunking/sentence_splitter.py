"""
Sentence-level text splitting utilities.

One segmenter is shared by the semantic chunker and the coherence scorer
so that chunk boundaries and coherence sentence counts never diverge.
"""

import logging
import re
from typing import List, Sequence

logger = logging.getLogger(__name__)

# Common abbreviations whose trailing period does not end a sentence
ABBREVIATIONS = (
    "Mr",
    "Mrs",
    "Ms",
    "Dr",
    "Prof",
    "Sr",
    "Jr",
    "vs",
    "etc",
    "Inc",
    "Ltd",
    "Corp",
    "St",
    "Ave",
    "Blvd",
    "Rd",
    "Dept",
    "Fig",
    "No",
    "e.g",
    "i.e",
)

_PARAGRAPH_BREAK = re.compile(r"\n[ \t\r\f\v]*\n")
_WHITESPACE = re.compile(r"\s+")

# Candidate boundary: terminal punctuation, whitespace, then an uppercase letter
_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")

# Text ending in a protected abbreviation (the boundary period excluded)
_ABBREVIATION_TAIL = re.compile(
    r"\b(?:" + "|".join(re.escape(a) for a in ABBREVIATIONS) + r")\.$",
    re.IGNORECASE,
)


def _split_paragraph(paragraph: str) -> List[str]:
    """Split one whitespace-normalised paragraph at sentence boundaries."""
    sentences = []
    start = 0

    for match in _BOUNDARY.finditer(paragraph):
        # Period belongs to an abbreviation such as "Dr." or "e.g."
        if _ABBREVIATION_TAIL.search(paragraph, start, match.start()):
            continue
        sentences.append(paragraph[start : match.start()])
        start = match.end()

    sentences.append(paragraph[start:])
    return [s.strip() for s in sentences if s.strip()]


def split_into_sentences(text) -> List[str]:
    """
    Split text into sentences.

    Rules:
    - Blank lines (paragraph breaks) always end a sentence
    - Whitespace is collapsed to single spaces
    - [.!?] followed by whitespace and an uppercase letter ends a sentence
    - Periods of known abbreviations (Dr., Inc., e.g., ...) never do

    Args:
        text: Text to split. Anything other than a non-empty string yields [].

    Returns:
        Ordered list of trimmed, non-empty sentences
    """
    if not text or not isinstance(text, str):
        return []

    sentences: List[str] = []
    for paragraph in _PARAGRAPH_BREAK.split(text):
        normalized = _WHITESPACE.sub(" ", paragraph).strip()
        if normalized:
            sentences.extend(_split_paragraph(normalized))

    return sentences


def build_combined_sentence(sentences: Sequence[str], index: int, buffer_size: int) -> str:
    """
    Join the sentence at ``index`` with up to ``buffer_size`` neighbours on each side.

    The window is clamped to the sequence bounds.
    """
    buffer = max(0, buffer_size or 0)
    start = max(0, index - buffer)
    end = min(len(sentences) - 1, index + buffer)
    return " ".join(sentences[start : end + 1])


def create_combined_sentences(sentences: Sequence[str], buffer_size: int) -> List[str]:
    """Context window for every sentence, in order."""
    return [build_combined_sentence(sentences, i, buffer_size) for i in range(len(sentences))]
