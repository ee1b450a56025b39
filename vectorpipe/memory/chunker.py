# vectorpipe/memory/chunker.py

import logging
import re
import string
import unicodedata
from typing import Iterator, List, Optional

from vectorpipe.config import Settings

logger = logging.getLogger(__name__)


STOP_WORDS = frozenset([
    "的", "了", "在", "是", "我", "有", "和", "就", "不", "人", "都", "一",
    "一个", "上", "也", "很", "到", "说", "要", "去", "你", "会", "着", "没有",
    "看", "好", "自己", "这", "那", "他", "她", "它", "我们", "你们", "他们",
    "她们", "它们",
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were", "be", "been",
])

SENTENCE_TERMINATORS = ".!?。！？"

_HTML_TAG_PATTERN = re.compile(r"<[^>]+>")
_URL_PATTERN = re.compile(r"https?://\S+")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_PUNCTUATION_RUN_PATTERN = re.compile("[" + re.escape(string.punctuation) + "]{2,}")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_SENTENCE_PATTERN = re.compile(
    "[^{t}]+[{t}]*".format(t=re.escape(SENTENCE_TERMINATORS))
)

# complexity score weights
LEXICAL_DIVERSITY_WEIGHT = 0.4
SENTENCE_LENGTH_WEIGHT = 0.4
PUNCTUATION_DENSITY_WEIGHT = 0.2
SENTENCE_LENGTH_SATURATION = 20.0  # words


class TextChunker:
    """
    Cleans raw text and splits it into overlapping, length-bounded chunks.

    Guarantees:
    • chunks are non-empty and at most max_chunk_size characters
    • chunks shorter than min_chunk_size are dropped
    • consecutive chunks share a word-aligned overlap
    • never raises on empty or None input
    """

    def __init__(self, settings: Optional[Settings] = None):

        settings = settings or Settings()

        self.max_chunk_size = settings.max_chunk_size
        self.min_chunk_size = settings.min_chunk_size
        self.chunk_overlap = settings.chunk_overlap
        self.remove_stop_words = settings.remove_stop_words

    # ============================================================
    # CLEANING
    # ============================================================

    def clean(self, text: Optional[str]) -> str:
        """Strip markup, URLs, emails and punctuation runs; lower-case."""

        if not text or not text.strip():
            return ""

        result = _HTML_TAG_PATTERN.sub(" ", text)
        result = _URL_PATTERN.sub(" ", result)
        result = _EMAIL_PATTERN.sub(" ", result)
        result = _PUNCTUATION_RUN_PATTERN.sub(" ", result)

        if self.remove_stop_words:
            result = self._strip_stop_words(result)

        result = _WHITESPACE_PATTERN.sub(" ", result)

        return result.strip().lower()

    def _strip_stop_words(self, text: str) -> str:

        kept = [
            word for word in text.split()
            if word.lower() not in STOP_WORDS and len(word) > 1
        ]

        return " ".join(kept)

    # ============================================================
    # SPLITTING
    # ============================================================

    def split(self, text: Optional[str]) -> List[str]:
        """
        Greedily pack sentences of already-cleaned text into chunks.

        When the next sentence does not fit, the running chunk is closed
        and the next one is seeded with its trailing words.
        """

        if not text or not text.strip():
            return []

        chunks: List[str] = []
        current = ""

        for sentence in self._sentences(text):

            for piece in self._fit(sentence):

                if current and len(current) + 1 + len(piece) > self.max_chunk_size:

                    self._emit(chunks, current)

                    seed = self._overlap(current)

                    # seed must leave room for the piece itself
                    if seed and len(seed) + 1 + len(piece) <= self.max_chunk_size:
                        current = seed
                    else:
                        current = ""

                current = f"{current} {piece}" if current else piece

        self._emit(chunks, current)

        return chunks

    def chunk(self, text: Optional[str]) -> List[str]:
        """Clean then split. Entry point for raw documents."""

        cleaned = self.clean(text)

        if not cleaned:
            logger.warning("Chunking skipped: empty text")
            return []

        chunks = self.split(cleaned)

        logger.info(
            "Chunking completed",
            extra={
                "original_length": len(text),
                "cleaned_length": len(cleaned),
                "max_chunk_size": self.max_chunk_size,
                "overlap": self.chunk_overlap,
                "chunks_created": len(chunks),
            },
        )

        return chunks

    def _emit(self, chunks: List[str], chunk: str):

        chunk = chunk.strip()

        if chunk and len(chunk) >= self.min_chunk_size:
            chunks.append(chunk)

    def _sentences(self, text: str) -> List[str]:

        sentences = []

        for match in _SENTENCE_PATTERN.findall(text):

            sentence = match.strip()

            if sentence.strip(SENTENCE_TERMINATORS).strip():
                sentences.append(sentence)

        return sentences

    def _fit(self, sentence: str) -> Iterator[str]:
        """Break a sentence longer than max_chunk_size at word boundaries."""

        limit = self.max_chunk_size

        if len(sentence) <= limit:
            yield sentence
            return

        piece = ""

        for word in sentence.split():

            # a single word over the limit has to be cut
            while len(word) > limit:
                if piece:
                    yield piece
                    piece = ""
                yield word[:limit]
                word = word[limit:]

            if not word:
                continue

            if piece and len(piece) + 1 + len(word) > limit:
                yield piece
                piece = word
            else:
                piece = f"{piece} {word}" if piece else word

        if piece:
            yield piece

    def _overlap(self, chunk: str) -> str:
        """Trailing whole words of `chunk` within the overlap budget."""

        budget = self.chunk_overlap

        if budget <= 0:
            return ""

        kept: List[str] = []
        length = 0

        for word in reversed(chunk.split()):

            extra = len(word) + (1 if kept else 0)

            if length + extra > budget:
                break

            kept.append(word)
            length += extra

        return " ".join(reversed(kept))

    # ============================================================
    # ADVISORY SIGNALS
    # ============================================================

    def complexity(self, text: Optional[str]) -> float:
        """
        Composite score in [0, 1] from lexical diversity, average sentence
        length and punctuation density.
        """

        if not text or not text.strip():
            return 0.0

        words = text.lower().split()

        lexical_diversity = len(set(words)) / len(words) if words else 0.0

        sentences = self._sentences(text)

        avg_sentence_length = len(words) / len(sentences) if sentences else 0.0

        punctuation = sum(
            1 for ch in text if unicodedata.category(ch) == "Po"
        )

        punctuation_density = punctuation / len(text)

        score = (
            LEXICAL_DIVERSITY_WEIGHT * lexical_diversity
            + SENTENCE_LENGTH_WEIGHT
            * min(avg_sentence_length / SENTENCE_LENGTH_SATURATION, 1.0)
            + PUNCTUATION_DENSITY_WEIGHT * punctuation_density
        )

        return min(score, 1.0)

    def estimate_processing_time(self, text: Optional[str]) -> int:
        """Coarse cost proxy: one unit per 1000 chars plus complexity."""

        if text is None:
            return 0

        base = len(text) // 1000
        complexity_units = int(self.complexity(text) * 10)

        return max(base + complexity_units, 1)


def chunk_text(text: Optional[str], settings: Optional[Settings] = None) -> List[str]:
    """Chunk a raw document with a one-off TextChunker."""
    return TextChunker(settings).chunk(text)
