"""Retry policy for translation calls."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ErrorCategory, ResponseParseError

RATE_LIMIT_MARKERS = (
    "429",
    "resource_exhausted",
    "resource exhausted",
    "too many requests",
    "rate limit",
)


def classify_error(exc: BaseException) -> ErrorCategory:
    """Map a failed translation call onto the category driving its backoff."""

    # Parse errors quote decoder positions, which may contain "429".
    if isinstance(exc, ResponseParseError):
        return ErrorCategory.TRANSLATION
    if getattr(exc, "status_code", None) == 429:
        return ErrorCategory.RATE_LIMIT
    message = str(exc).lower()
    if any(marker in message for marker in RATE_LIMIT_MARKERS):
        return ErrorCategory.RATE_LIMIT
    return ErrorCategory.NETWORK


@dataclass
class RetryPolicy:
    """Attempt budget and backoff schedule for one batch.

    Rate-limited calls back off exponentially from ``rate_limit_base_delay``
    (5s, 10s, 20s, ...). Everything else waits ``retry_base_delay`` times the
    attempt number (2s, 4s, 6s, ...).
    """

    max_attempts: int = 5
    rate_limit_base_delay: float = 5.0
    retry_base_delay: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, category: ErrorCategory, attempt: int) -> float:
        """Seconds to wait after the given 1-based failed attempt."""

        if category is ErrorCategory.RATE_LIMIT:
            return self.rate_limit_base_delay * (2 ** (attempt - 1))
        return self.retry_base_delay * attempt

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts
