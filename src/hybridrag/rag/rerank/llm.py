"""
Rerank by asking a completion model for a 0-10 relevance grade.
"""

import re
from typing import List, Sequence, Tuple

from hybridrag.core.logging import logger
from hybridrag.llm.base import CompletionClient
from hybridrag.models.search import RerankCandidate

DEFAULT_SCORE = 0.5
MAX_DOCUMENT_CHARS = 500

PROMPT_TEMPLATE = """Rate the relevance of the following document to the query on a scale of 0 to 10.
Only respond with a single number, nothing else.

Query: {query}

Document: {document}

Relevance score (0-10):"""

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def truncate(text: str, max_length: int = MAX_DOCUMENT_CHARS) -> str:
    return text if len(text) <= max_length else text[:max_length] + "..."


def parse_grade(text: str) -> float:
    """
    First number in ``text`` divided by 10, clamped to [0, 1].

    Raises ValueError when no number is present.
    """
    match = _NUMBER.search(text or "")
    if match is None:
        raise ValueError(f"No numeric grade in {text!r}")
    return min(max(float(match.group()) / 10.0, 0.0), 1.0)


class LLMRerankBackend:
    """
    Grades documents one at a time.

    A call or parse failure affects only that document, which receives
    the neutral score 0.5.
    """

    name = "llm"

    def __init__(self, client: CompletionClient) -> None:
        self.client = client

    async def score(
        self, query: str, candidates: Sequence[RerankCandidate], top_k: int
    ) -> List[Tuple[int, float]]:
        scored = []
        for index, candidate in enumerate(candidates):
            scored.append((index, await self._score_one(query, candidate.text)))
        return scored

    async def _score_one(self, query: str, document: str) -> float:
        prompt = PROMPT_TEMPLATE.format(query=query, document=truncate(document))
        try:
            response = await self.client.complete(prompt, temperature=0.0, max_tokens=5)
            return parse_grade(response)
        except Exception as e:
            logger.warning("LLM rerank scoring failed", error=str(e))
            return DEFAULT_SCORE
