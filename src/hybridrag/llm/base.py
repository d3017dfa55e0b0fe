"""
Completion service protocol.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CompletionClient(Protocol):
    """Text-in, text-out language model."""

    async def complete(self, prompt: str, temperature: float, max_tokens: int) -> str: ...
