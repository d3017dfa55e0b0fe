"""
Question frequency tracking.

A question becomes eligible for completion caching only once it has been
asked ``threshold`` times, so one-off questions never displace repeated
ones in the bounded cache.
"""

import hashlib
import re
import threading
from typing import Dict, Optional

from hybridrag.core.logging import logger
from hybridrag.core.utils.datetime_utils import utc_now
from hybridrag.models.frequency import (
    FrequencyStatistics,
    FrequentQuestion,
    QuestionFrequencyRecord,
)

DEFAULT_THRESHOLD = 2
TOP_QUESTIONS = 10

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[?!.,;:]")


def normalize_question(question: str) -> str:
    """
    Lowercase, collapse whitespace, strip ``?!.,;:`` and trim.

    >>> normalize_question("  What is   BM25?? ")
    'what is bm25'
    """
    text = _WHITESPACE.sub(" ", (question or "").lower())
    return _PUNCTUATION.sub("", text).strip()


def hash_question(normalized: str) -> str:
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class QuestionFrequencyTracker:
    """In-memory, thread-safe ask counters keyed by normalized question hash."""

    def __init__(self, threshold: int = DEFAULT_THRESHOLD):
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.threshold = threshold
        self._records: Dict[str, QuestionFrequencyRecord] = {}
        self._lock = threading.Lock()

    def record_and_check(self, question: str) -> bool:
        """
        Count one more ask and report whether the question is now frequent.

        Increment and read happen under one lock, so concurrent asks of the
        same question never lose an update.
        """
        normalized = normalize_question(question)
        question_hash = hash_question(normalized)
        now = utc_now()

        with self._lock:
            record = self._records.get(question_hash)
            if record is None:
                record = QuestionFrequencyRecord(
                    question_hash=question_hash,
                    normalized_question=normalized,
                    first_asked=now,
                    last_asked=now,
                )
                self._records[question_hash] = record
            else:
                record.ask_count += 1
                record.last_asked = now

            if record.ask_count >= self.threshold and not record.is_cached:
                record.is_cached = True
                logger.info(
                    "Question reached cache threshold",
                    question=normalized[:80],
                    ask_count=record.ask_count,
                )
            return record.ask_count >= self.threshold

    def get_record(self, question: str) -> Optional[QuestionFrequencyRecord]:
        question_hash = hash_question(normalize_question(question))
        with self._lock:
            record = self._records.get(question_hash)
            return record.model_copy() if record is not None else None

    def get_statistics(self) -> FrequencyStatistics:
        with self._lock:
            records = list(self._records.values())

        top = sorted(records, key=lambda r: r.ask_count, reverse=True)[:TOP_QUESTIONS]
        return FrequencyStatistics(
            unique_questions=len(records),
            total_asks=sum(r.ask_count for r in records),
            cached_questions=sum(1 for r in records if r.is_cached),
            cache_threshold=self.threshold,
            top_questions=[
                FrequentQuestion(
                    question=r.normalized_question, ask_count=r.ask_count, is_cached=r.is_cached
                )
                for r in top
            ],
        )

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
