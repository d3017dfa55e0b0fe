"""
hybridrag models.
"""

from .base import HybridRagBaseModel
from .chunk import Chunk
from .search import (
    SearchHit,
    FusedResult,
    RerankCandidate,
    RerankResult,
    SourceChunk,
    QueryResult,
    IndexStats,
)
from .frequency import QuestionFrequencyRecord, FrequentQuestion, FrequencyStatistics

__all__ = [
    "HybridRagBaseModel",
    "Chunk",
    "SearchHit",
    "FusedResult",
    "RerankCandidate",
    "RerankResult",
    "SourceChunk",
    "QueryResult",
    "IndexStats",
    "QuestionFrequencyRecord",
    "FrequentQuestion",
    "FrequencyStatistics",
]
