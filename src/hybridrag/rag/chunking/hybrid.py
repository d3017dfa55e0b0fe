"""
Paragraph-aware text chunker.

Packs paragraphs greedily up to ``max_chars``, falls back to sentence and
then word splitting for oversized paragraphs, drops fragments shorter than
``min_chars`` and finally prefixes every chunk with the tail of its
predecessor.
"""

import re
from typing import List, Optional

from hybridrag.core.exceptions import ValidationError
from hybridrag.core.logging import logger

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n+")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_HORIZONTAL_WS = re.compile(r"[ \t]+")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


class HybridChunker:
    """
    Split documents into overlapping chunks.

    Base chunks never exceed ``max_chars``; after overlap a chunk may grow
    by at most ``overlap_chars + 1`` characters (tail plus a newline).

    Example:
        >>> chunker = HybridChunker(max_chars=100, overlap_chars=0, min_chars=10)
        >>> len(chunker.chunk(" ".join(["word"] * 50)))
        3
    """

    def __init__(self, max_chars: int, overlap_chars: int = 0, min_chars: int = 0):
        if max_chars <= 0:
            raise ValidationError(
                "max_chars must be positive", context={"max_chars": max_chars}
            )
        if overlap_chars < 0:
            raise ValidationError(
                "overlap_chars must be non-negative", context={"overlap_chars": overlap_chars}
            )
        if min_chars < 0 or min_chars > max_chars:
            raise ValidationError(
                "min_chars must be between 0 and max_chars",
                context={"min_chars": min_chars, "max_chars": max_chars},
            )
        self.max_chars = max_chars
        self.overlap_chars = overlap_chars
        self.min_chars = min_chars

    def chunk(self, text: Optional[str]) -> List[str]:
        """Split ``text`` into chunks. ``None`` and blank text yield ``[]``."""
        normalized = self._normalize(text)
        if not normalized:
            return []

        base: List[str] = []
        current = ""

        for paragraph in _PARAGRAPH_SPLIT.split(normalized):
            paragraph = paragraph.strip()
            if not paragraph:
                continue

            if len(paragraph) > self.max_chars:
                self._emit(base, current)
                current = ""
                self._split_long_paragraph(base, paragraph)
                continue

            if len(current) + len(paragraph) + 2 > self.max_chars:
                self._emit(base, current)
                current = ""
            current = f"{current}\n\n{paragraph}" if current else paragraph

        self._emit(base, current)

        chunks = self._apply_overlap(base)
        logger.debug(
            "Text chunked",
            input_chars=len(normalized),
            chunks=len(chunks),
            max_chars=self.max_chars,
        )
        return chunks

    def _split_long_paragraph(self, out: List[str], paragraph: str) -> None:
        current = ""
        for sentence in _SENTENCE_SPLIT.split(paragraph):
            sentence = sentence.strip()
            if not sentence:
                continue
            if len(sentence) > self.max_chars:
                self._emit(out, current)
                current = ""
                self._split_long_sentence(out, sentence)
                continue
            if len(current) + len(sentence) + 1 > self.max_chars:
                self._emit(out, current)
                current = ""
            current = f"{current} {sentence}" if current else sentence
        self._emit(out, current)

    def _split_long_sentence(self, out: List[str], sentence: str) -> None:
        current = ""
        for word in sentence.split():
            # A single token longer than max_chars is cut into fixed slices
            if len(word) > self.max_chars:
                self._emit(out, current)
                current = ""
                for start in range(0, len(word), self.max_chars):
                    self._emit(out, word[start : start + self.max_chars])
                continue
            if len(current) + len(word) + 1 > self.max_chars:
                self._emit(out, current)
                current = ""
            current = f"{current} {word}" if current else word
        self._emit(out, current)

    def _apply_overlap(self, chunks: List[str]) -> List[str]:
        if self.overlap_chars <= 0 or len(chunks) < 2:
            return chunks

        out = [chunks[0]]
        for previous, chunk in zip(chunks, chunks[1:]):
            tail = previous[-self.overlap_chars :]
            out.append(f"{tail}\n{chunk}")
        return out

    def _emit(self, out: List[str], candidate: str) -> None:
        candidate = candidate.strip()
        if candidate and len(candidate) >= self.min_chars:
            out.append(candidate)

    @staticmethod
    def _normalize(text: Optional[str]) -> str:
        if text is None:
            return ""
        text = text.replace("\x00", " ")
        text = _HORIZONTAL_WS.sub(" ", text)
        text = _EXTRA_NEWLINES.sub("\n\n", text)
        return text.strip()
