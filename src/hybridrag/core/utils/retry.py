"""
Retry policy for the HTTP collaborators.

Only errors that declare themselves retryable through ``is_retryable()``
(see ``HybridRagError``) are attempted again; everything else propagates on
the first failure. Retrieval algorithms never retry.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

BACKOFF_STRATEGIES = ("exponential", "linear", "constant")


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to call, and how long to wait in between.

    Example:
        >>> policy = RetryPolicy(max_attempts=3, initial_delay=0.5)
        >>> [policy.delay(n) for n in (1, 2)]
        [0.5, 1.0]
    """

    max_attempts: int = 3
    backoff: str = "exponential"
    initial_delay: float = 0.5
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff not in BACKOFF_STRATEGIES:
            raise ValueError(f"Unknown backoff {self.backoff!r}")

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        section = settings.get("retry", {}) or {}
        return cls(
            max_attempts=int(section.get("max_attempts", cls.max_attempts)),
            backoff=section.get("backoff", cls.backoff),
            initial_delay=float(section.get("initial_delay", cls.initial_delay)),
            max_delay=float(section.get("max_delay", cls.max_delay)),
        )

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the 1-based ``attempt`` failed."""
        if self.backoff == "exponential":
            delay = self.initial_delay * (2 ** (attempt - 1))
        elif self.backoff == "linear":
            delay = self.initial_delay * attempt
        else:
            delay = self.initial_delay
        return min(delay, self.max_delay)


def is_retryable(error: BaseException) -> bool:
    check = getattr(error, "is_retryable", None)
    return bool(callable(check) and check())


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    logger: Optional[Any] = None,
) -> T:
    """
    Call ``func`` until it succeeds, fails with a final error, or the
    policy runs out of attempts.

    Args:
        func: Zero-argument coroutine function
        policy: Attempts and backoff, defaults to ``RetryPolicy()``
        logger: Optional logger for retry attempts

    Returns:
        Result of the first successful call

    Raises:
        The last error raised by ``func``
    """
    policy = policy or RetryPolicy()
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func()
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt >= policy.max_attempts:
                if logger:
                    logger.error("All retry attempts failed", attempts=attempt, error=str(e))
                raise

            delay = policy.delay(attempt)
            if logger:
                logger.warning(
                    "Retry attempt failed",
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay=delay,
                    error=str(e),
                )
            await asyncio.sleep(delay)
