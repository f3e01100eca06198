"""HTTP utilities describing retry/backoff semantics."""

from __future__ import annotations

from typing import Optional


class RetryConfig:
    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_base: float = 2.0,
        default_retry_after: int = 60,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.backoff_base = backoff_base
        self.default_retry_after = default_retry_after

    def backoff_seconds(self, attempt: int) -> float:
        """Delay after the ``attempt``-th (1-based) failed network attempt."""
        return self.backoff_base**attempt


def parse_retry_after(value: Optional[str], default: int = 60) -> int:
    """Read a ``Retry-After`` header given in seconds."""
    if value is None:
        return default
    try:
        seconds = int(value.strip())
    except ValueError:
        return default
    if seconds < 0:
        return default
    return seconds


__all__ = ["RetryConfig", "parse_retry_after"]
