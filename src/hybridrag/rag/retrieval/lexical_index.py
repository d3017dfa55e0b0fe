"""
In-memory BM25 index for sparse (lexical) retrieval.

Thread-safe: mutations take the writer side of a reader/writer lock,
searches and statistics take the reader side.
"""

import itertools
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from hybridrag.core.logging import logger
from hybridrag.core.utils.rwlock import ReadWriteLock
from hybridrag.models.chunk import Chunk
from hybridrag.models.search import IndexStats, SearchHit

# Term frequency saturation
K1 = 1.5
# Length normalization
B = 0.75

MIN_TOKEN_LENGTH = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

STOPWORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all",
        "can", "had", "her", "was", "one", "our", "out", "has",
        "have", "been", "were", "they", "this", "that", "with",
        "from", "will", "would", "there", "their", "what", "about",
        "which", "when", "make", "like", "time", "just", "know",
        "take", "into", "year", "your", "some", "could", "them",
        "than", "then", "now", "look", "only", "come", "its",
        "over", "also", "back", "after", "use", "two", "how",
        "first", "well", "way", "even", "new", "want", "because",
        "any", "these", "give", "most", "being",
    }
)  # fmt: skip


def tokenize(text: Optional[str]) -> List[str]:
    """
    Lowercase, replace everything outside ``[a-z0-9]`` with spaces, split,
    then drop tokens shorter than 3 chars and stopwords.

    >>> tokenize("The Quick, brown fox!")
    ['quick', 'brown', 'fox']
    """
    if not text:
        return []
    return [
        token
        for token in _NON_ALNUM.sub(" ", text.lower()).split()
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOPWORDS
    ]


@dataclass
class _IndexedChunk:
    id: str
    document_id: str
    chunk_index: int
    text: str
    term_frequencies: Dict[str, int]
    length: int
    sequence: int
    categories: frozenset = field(default_factory=frozenset)


class BM25Index:
    """
    BM25 ranking over chunk text.

    ``idf = ln((N - df + 0.5) / (df + 0.5) + 1)`` and each matching term
    contributes ``idf * tf*(k1+1) / (tf + k1*(1 - b + b*len/avg_len))``.
    Ties keep insertion order.
    """

    def __init__(self) -> None:
        self._chunks: Dict[str, _IndexedChunk] = {}
        self._postings: Dict[str, Dict[str, int]] = {}
        self._total_length = 0
        self._avg_length = 0.0
        self._sequence = itertools.count()
        self._lock = ReadWriteLock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def index(
        self,
        id: str,
        document_id: str,
        chunk_index: int,
        text: str,
        categories: Optional[Iterable[str]] = None,
    ) -> bool:
        """
        Index a chunk, replacing any previous entry with the same id.

        Returns:
            False when the text yields no tokens and nothing was stored.
        """
        tokens = tokenize(text)
        with self._lock.write_locked():
            self._remove_locked(id)
            stored = self._add_locked(id, document_id, chunk_index, text, tokens, categories)

        if stored:
            logger.debug("Chunk indexed", chunk_id=id, tokens=len(tokens))
        return stored

    def index_chunk(self, chunk: Chunk) -> bool:
        return self.index(
            chunk.id, chunk.document_id, chunk.chunk_index, chunk.text, chunk.categories
        )

    def index_batch(self, chunks: Iterable[Chunk]) -> int:
        """Index several chunks. Returns how many were stored."""
        stored = sum(1 for chunk in chunks if self.index_chunk(chunk))
        logger.info("Batch indexed", stored=stored, total=self.size)
        return stored

    def replace_document(self, document_id: str, chunks: Sequence[Chunk]) -> int:
        """
        Swap every chunk of ``document_id`` for ``chunks`` in one write.

        Searches see either the old or the new version, never a mix.
        Returns how many new chunks were stored.
        """
        tokenized = [(chunk, tokenize(chunk.text)) for chunk in chunks]
        with self._lock.write_locked():
            old_ids = [c.id for c in self._chunks.values() if c.document_id == document_id]
            for chunk_id in old_ids:
                self._remove_locked(chunk_id)
            stored = 0
            for chunk, tokens in tokenized:
                self._remove_locked(chunk.id)
                if self._add_locked(
                    chunk.id, document_id, chunk.chunk_index, chunk.text, tokens, chunk.categories
                ):
                    stored += 1

        logger.info(
            "Document replaced in index", document_id=document_id, removed=len(old_ids), stored=stored
        )
        return stored

    def remove(self, id: str) -> bool:
        """Remove one chunk. Unknown ids are a no-op."""
        with self._lock.write_locked():
            removed = self._remove_locked(id)
        if removed:
            logger.debug("Chunk removed from index", chunk_id=id)
        return removed

    def remove_by_document_id(self, document_id: str) -> int:
        """Remove every chunk of a document. Returns the number removed."""
        with self._lock.write_locked():
            ids = [c.id for c in self._chunks.values() if c.document_id == document_id]
            for chunk_id in ids:
                self._remove_locked(chunk_id)
        logger.info("Document removed from index", document_id=document_id, chunks=len(ids))
        return len(ids)

    def clear(self) -> None:
        with self._lock.write_locked():
            self._chunks.clear()
            self._postings.clear()
            self._total_length = 0
            self._avg_length = 0.0
        logger.info("BM25 index cleared")

    def _add_locked(
        self,
        id: str,
        document_id: str,
        chunk_index: int,
        text: str,
        tokens: List[str],
        categories: Optional[Iterable[str]],
    ) -> bool:
        if not tokens:
            return False

        term_frequencies = dict(Counter(tokens))
        self._chunks[id] = _IndexedChunk(
            id=id,
            document_id=document_id,
            chunk_index=chunk_index,
            text=text,
            term_frequencies=term_frequencies,
            length=len(tokens),
            sequence=next(self._sequence),
            categories=frozenset(categories or ()),
        )
        for term, tf in term_frequencies.items():
            self._postings.setdefault(term, {})[id] = tf
        self._total_length += len(tokens)
        self._recalculate_avg_length()
        return True

    def _remove_locked(self, id: str) -> bool:
        chunk = self._chunks.pop(id, None)
        if chunk is None:
            return False
        for term in chunk.term_frequencies:
            postings = self._postings.get(term)
            if postings is None:
                continue
            postings.pop(id, None)
            if not postings:
                del self._postings[term]
        self._total_length -= chunk.length
        self._recalculate_avg_length()
        return True

    def _recalculate_avg_length(self) -> None:
        self._avg_length = self._total_length / len(self._chunks) if self._chunks else 0.0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(
        self, query: str, top_k: int, category_filter: Optional[str] = None
    ) -> List[SearchHit]:
        """
        Rank chunks against ``query``.

        Args:
            query: Free text, tokenized like indexed text
            top_k: Maximum number of hits
            category_filter: Only chunks tagged with this category score

        Returns:
            Hits by descending BM25 score; empty for an empty query or index
        """
        query_terms = tokenize(query)
        if not query_terms or top_k <= 0:
            return []

        with self._lock.read_locked():
            total_docs = len(self._chunks)
            if total_docs == 0:
                return []

            scores: Dict[str, float] = {}
            for term in query_terms:
                postings = self._postings.get(term)
                if not postings:
                    continue

                df = len(postings)
                idf = math.log((total_docs - df + 0.5) / (df + 0.5) + 1)

                for chunk_id, tf in postings.items():
                    chunk = self._chunks[chunk_id]
                    if category_filter and category_filter not in chunk.categories:
                        continue
                    length_norm = 1 - B + B * (chunk.length / self._avg_length)
                    tf_norm = (tf * (K1 + 1)) / (tf + K1 * length_norm)
                    scores[chunk_id] = scores.get(chunk_id, 0.0) + idf * tf_norm

            ranked = sorted(
                scores.items(), key=lambda item: (-item[1], self._chunks[item[0]].sequence)
            )[:top_k]

            return [
                SearchHit(
                    id=chunk_id,
                    document_id=self._chunks[chunk_id].document_id,
                    chunk_index=self._chunks[chunk_id].chunk_index,
                    text=self._chunks[chunk_id].text,
                    score=score,
                )
                for chunk_id, score in ranked
            ]

    def contains(self, id: str) -> bool:
        with self._lock.read_locked():
            return id in self._chunks

    @property
    def size(self) -> int:
        """Number of indexed chunks."""
        with self._lock.read_locked():
            return len(self._chunks)

    @property
    def vocabulary_size(self) -> int:
        with self._lock.read_locked():
            return len(self._postings)

    @property
    def average_document_length(self) -> float:
        with self._lock.read_locked():
            return self._avg_length

    def get_stats(self) -> IndexStats:
        with self._lock.read_locked():
            return IndexStats(
                total_documents=len(self._chunks),
                vocabulary_size=len(self._postings),
                average_document_length=self._avg_length,
            )
