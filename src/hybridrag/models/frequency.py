"""
Question frequency records.
"""

from datetime import datetime
from typing import List
from pydantic import Field

from hybridrag.core.utils.datetime_utils import utc_now
from hybridrag.models.base import HybridRagBaseModel


class QuestionFrequencyRecord(HybridRagBaseModel):
    """How often a normalized question has been asked."""

    question_hash: str = Field(..., description="SHA-256 hex of the normalized question")
    normalized_question: str
    ask_count: int = Field(1, ge=1)
    is_cached: bool = False
    first_asked: datetime = Field(default_factory=utc_now)
    last_asked: datetime = Field(default_factory=utc_now)


class FrequentQuestion(HybridRagBaseModel):
    question: str
    ask_count: int
    is_cached: bool


class FrequencyStatistics(HybridRagBaseModel):
    """Aggregate view of the frequency tracker."""

    unique_questions: int
    total_asks: int
    cached_questions: int
    cache_threshold: int
    top_questions: List[FrequentQuestion] = Field(default_factory=list)
