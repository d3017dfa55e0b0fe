"""
Frequency-gated, quality-gated caching.
"""

from hybridrag.cache.frequency import (
    QuestionFrequencyTracker,
    normalize_question,
    hash_question,
)
from hybridrag.cache.query_cache import (
    QueryResultCache,
    is_no_information_answer,
    make_cache_key,
)
from hybridrag.cache.completion import CachedCompletion, is_cacheable_response
from hybridrag.cache.gate import CacheGate

__all__ = [
    "QuestionFrequencyTracker",
    "normalize_question",
    "hash_question",
    "QueryResultCache",
    "is_no_information_answer",
    "make_cache_key",
    "CachedCompletion",
    "is_cacheable_response",
    "CacheGate",
]
